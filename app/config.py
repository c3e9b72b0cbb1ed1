"""
Application configuration. Loads from environment variables.
Secrets and sensitive config must never be hardcoded.
"""

import os

from dotenv import load_dotenv

load_dotenv()
from functools import lru_cache
from typing import Optional


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Return cached settings instance."""
    return Settings()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment."""

    # App
    app_name: str = "Null Fake"
    debug: bool = False

    # Database (postgresql+psycopg for psycopg3; sqlite:/// accepted for local runs)
    database_url: str = "postgresql+psycopg://localhost:5432/nullfake_dev"
    db_connect_timeout: int = 10  # seconds

    # Security
    internal_job_token: str = ""  # Required for /internal/* endpoints

    # OpenAI
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None
    llm_timeout: float = 60.0
    llm_max_retries: int = 3

    # DeepSeek
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    deepseek_model: str = "deepseek-v3"
    deepseek_timeout: float = 120.0

    # Ollama
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "phi4:14b"
    ollama_timeout: float = 120.0
    ollama_chunking_threshold: int = 80  # review count that triggers chunking
    ollama_chunk_size: int = 25

    # Provider selection
    llm_primary_provider: str = "openai"
    llm_fallback_order: list[str] = ("ollama", "deepseek", "openai")

    # BrightData datasets v3
    brightdata_api_key: str = ""
    brightdata_dataset_id: str = "gd_le8e811kzy4ggddlq"
    brightdata_base_url: str = "https://api.brightdata.com/datasets/v3"
    brightdata_max_reviews: int = 200
    brightdata_timeout: float = 30.0
    brightdata_poll_interval: int = 30  # seconds between sync polls
    brightdata_max_poll_attempts: int = 40
    brightdata_check_delay: int = 30  # seconds between queued progress checks
    brightdata_max_check_attempts: int = 10

    # Chrome extension intake
    extension_api_key: str = ""
    extension_require_api_key: bool = True

    # Analysis
    analysis_async_enabled: bool = True
    analysis_session_cleanup_hours: int = 24
    fake_score_cutoff: int = 85  # per-review score at or above which a review counts as fake

    def __init__(self) -> None:
        self.app_name = os.getenv("APP_NAME", self.app_name)
        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        default_user = os.getenv("PGUSER") or os.getenv("USER") or "postgres"
        default_url = (
            f"postgresql+psycopg://{default_user}:"
            f"{os.getenv('PGPASSWORD', '')}@"
            f"{os.getenv('PGHOST', 'localhost')}:"
            f"{os.getenv('PGPORT', '5432')}/"
            f"{os.getenv('PGDATABASE', 'nullfake_dev')}"
        )
        raw_url = os.getenv("DATABASE_URL", default_url)
        # Ensure psycopg3 driver if URL uses generic postgresql://
        if raw_url.startswith("postgresql://") and not raw_url.startswith("postgresql+psycopg"):
            raw_url = raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
        self.database_url = raw_url
        self.db_connect_timeout = int(os.getenv("DB_CONNECT_TIMEOUT", str(self.db_connect_timeout)))

        self.internal_job_token = os.getenv("INTERNAL_JOB_TOKEN", "")

        self.openai_api_key = os.getenv("OPENAI_API_KEY") or None
        self.openai_model = os.getenv("OPENAI_MODEL", self.openai_model)
        self.openai_base_url = os.getenv("OPENAI_BASE_URL") or None
        self.llm_timeout = float(os.getenv("LLM_TIMEOUT", str(self.llm_timeout)))
        self.llm_max_retries = int(os.getenv("LLM_MAX_RETRIES", str(self.llm_max_retries)))

        self.deepseek_api_key = os.getenv("DEEPSEEK_API_KEY", "")
        self.deepseek_base_url = os.getenv("DEEPSEEK_BASE_URL", self.deepseek_base_url)
        self.deepseek_model = os.getenv("DEEPSEEK_MODEL", self.deepseek_model)
        self.deepseek_timeout = float(os.getenv("DEEPSEEK_TIMEOUT", str(self.deepseek_timeout)))

        self.ollama_base_url = os.getenv("OLLAMA_BASE_URL", self.ollama_base_url)
        self.ollama_model = os.getenv("OLLAMA_MODEL", self.ollama_model)
        self.ollama_timeout = float(os.getenv("OLLAMA_TIMEOUT", str(self.ollama_timeout)))
        self.ollama_chunking_threshold = int(
            os.getenv("OLLAMA_CHUNKING_THRESHOLD", str(self.ollama_chunking_threshold))
        )
        self.ollama_chunk_size = int(os.getenv("OLLAMA_CHUNK_SIZE", str(self.ollama_chunk_size)))

        self.llm_primary_provider = os.getenv(
            "LLM_PRIMARY_PROVIDER", self.llm_primary_provider
        ).lower()
        # Comma-separated provider keys, e.g. "ollama,deepseek,openai"
        _order = os.getenv("LLM_FALLBACK_ORDER", "").strip()
        self.llm_fallback_order = (
            [s.strip().lower() for s in _order.split(",") if s.strip()]
            if _order
            else list(self.llm_fallback_order)
        )

        self.brightdata_api_key = os.getenv("BRIGHTDATA_API_KEY", "")
        self.brightdata_dataset_id = os.getenv("BRIGHTDATA_DATASET_ID", self.brightdata_dataset_id)
        self.brightdata_base_url = os.getenv("BRIGHTDATA_BASE_URL", self.brightdata_base_url)
        self.brightdata_max_reviews = int(
            os.getenv("BRIGHTDATA_MAX_REVIEWS", str(self.brightdata_max_reviews))
        )
        self.brightdata_timeout = float(
            os.getenv("BRIGHTDATA_TIMEOUT", str(self.brightdata_timeout))
        )
        self.brightdata_poll_interval = int(
            os.getenv("BRIGHTDATA_POLL_INTERVAL", str(self.brightdata_poll_interval))
        )
        self.brightdata_max_poll_attempts = int(
            os.getenv("BRIGHTDATA_MAX_POLL_ATTEMPTS", str(self.brightdata_max_poll_attempts))
        )
        self.brightdata_check_delay = int(
            os.getenv("BRIGHTDATA_CHECK_DELAY", str(self.brightdata_check_delay))
        )
        self.brightdata_max_check_attempts = int(
            os.getenv("BRIGHTDATA_MAX_CHECK_ATTEMPTS", str(self.brightdata_max_check_attempts))
        )

        self.extension_api_key = os.getenv("EXTENSION_API_KEY", "")
        self.extension_require_api_key = _env_bool(
            "EXTENSION_REQUIRE_API_KEY", self.extension_require_api_key
        )

        self.analysis_async_enabled = _env_bool(
            "ANALYSIS_ASYNC_ENABLED", self.analysis_async_enabled
        )
        self.analysis_session_cleanup_hours = int(
            os.getenv("ANALYSIS_SESSION_CLEANUP_HOURS", str(self.analysis_session_cleanup_hours))
        )
        self.fake_score_cutoff = int(os.getenv("FAKE_SCORE_CUTOFF", str(self.fake_score_cutoff)))
