"""
Review prompt templates.

Templates are ``<stem>_v<N>.md`` files next to this module. A provider can
override a template with ``<stem>_<provider>_v<N>.md`` (for example
``review_system_deepseek_v1``). Placeholders use ``{{NAME}}`` so the JSON
examples inside templates need no escaping.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent

_PLACEHOLDER_RE = re.compile(r"\{\{([A-Z_][A-Z0-9_]*)\}\}")
_VERSIONED_NAME_RE = re.compile(r"^(?P<stem>.+)_(?P<version>v\d+)$")


def list_prompts() -> list[str]:
    """Names of every template shipped with the package."""
    return sorted(p.stem for p in _PROMPTS_DIR.glob("*.md"))


@lru_cache(maxsize=64)
def load_prompt(template_name: str) -> str:
    """Raw template text with trailing whitespace removed.

    Raises:
        FileNotFoundError: No ``<template_name>.md``; the message lists what exists.
    """
    path = _PROMPTS_DIR / f"{template_name}.md"
    if not path.is_file():
        raise FileNotFoundError(
            f"Prompt template '{template_name}' not found at {path}. "
            f"Available templates: {list_prompts()}"
        )
    return path.read_text(encoding="utf-8").rstrip()


def provider_template_name(template_name: str, provider_key: str) -> str:
    """Provider override of ``template_name`` when one exists, else ``template_name``."""
    match = _VERSIONED_NAME_RE.match(template_name)
    if not match or not provider_key:
        return template_name
    candidate = f"{match['stem']}_{provider_key.lower()}_{match['version']}"
    if (_PROMPTS_DIR / f"{candidate}.md").is_file():
        return candidate
    return template_name


def load_provider_prompt(template_name: str, provider_key: str) -> str:
    return load_prompt(provider_template_name(template_name, provider_key))


def render_prompt(template_name: str, **variables: object) -> str:
    """Load ``template_name`` and substitute ``{{NAME}}`` placeholders.

    Plain string replacement, so only pass trusted values; review text is
    appended by the caller after rendering. Extra variables are logged and
    ignored.

    Raises:
        FileNotFoundError: Template does not exist.
        ValueError: A placeholder was left without a value.
    """
    rendered = load_prompt(template_name)
    expected = set(_PLACEHOLDER_RE.findall(rendered))

    unused = sorted(set(variables) - expected)
    if unused:
        logger.warning("Unused prompt variables for '%s': %s", template_name, unused)

    missing = sorted(expected - set(variables))
    if missing:
        raise ValueError(f"Unfilled placeholders in template '{template_name}': {missing}")

    for name in expected:
        rendered = rendered.replace(f"{{{{{name}}}}}", str(variables[name]))
    return rendered
