"""
Centralized test credentials and secrets.

All test-only credentials are loaded from environment variables when available,
with clearly non-production placeholders as fallbacks.
"""

from __future__ import annotations

import os

# API keys and tokens: load from env; fallback is obviously a placeholder
TEST_LLM_API_KEY = os.environ.get("TEST_LLM_API_KEY") or "k"
TEST_DEEPSEEK_API_KEY = os.environ.get("TEST_DEEPSEEK_API_KEY") or "ds-k"
TEST_BRIGHTDATA_API_KEY = os.environ.get("TEST_BRIGHTDATA_API_KEY") or "bd-k"

# App config used by conftest and API tests
TEST_INTERNAL_JOB_TOKEN = os.environ.get("TEST_INTERNAL_JOB_TOKEN") or "test-internal-token"
TEST_EXTENSION_API_KEY = os.environ.get("TEST_EXTENSION_API_KEY") or "test-extension-key"

# Sample product used across tests
TEST_ASIN = "B08N5WRWNW"
TEST_PRODUCT_URL = f"https://www.amazon.com/dp/{TEST_ASIN}/"
