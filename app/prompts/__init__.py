"""
Review analysis prompt templates (.md files in this package).

Templates are versioned by filename and edited without code changes.
"""

from app.prompts.loader import list_prompts, load_prompt, load_provider_prompt, render_prompt

__all__ = ["list_prompts", "load_prompt", "load_provider_prompt", "render_prompt"]
