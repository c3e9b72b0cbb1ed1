"""
Review analysis prompt assembly.

Static instruction text lives in app/prompts/*.md. Review text is appended
here, outside of templates, so user content never goes through placeholder
rendering.
"""

from __future__ import annotations

from typing import Any

from app.prompts.loader import load_prompt, load_provider_prompt, render_prompt

# Per-provider review text limits (characters)
PROVIDER_TEXT_LIMITS: dict[str, int] = {
    "openai": 400,
    "deepseek": 300,
    "ollama": 300,
}
DEFAULT_TEXT_LIMIT = 300

SYSTEM_TEMPLATE = "review_system_v1"


def get_provider_text_limit(provider_key: str) -> int:
    return PROVIDER_TEXT_LIMITS.get(provider_key.lower(), DEFAULT_TEXT_LIMIT)


def get_provider_system_message(provider_key: str) -> str:
    """System message for chat-format providers; DeepSeek has a stricter variant."""
    return load_provider_prompt(SYSTEM_TEMPLATE, provider_key)


def clean_text(text: str) -> str:
    """Drop NUL and SUB characters and surrounding whitespace."""
    return text.replace("\x00", "").replace("\x1a", "").strip()


def review_text(review: dict[str, Any]) -> str:
    """Review body from whichever field the source used."""
    for field in ("review_text", "text", "content"):
        value = review.get(field)
        if isinstance(value, str) and value:
            return value
    return ""


def is_verified(review: dict[str, Any]) -> bool:
    meta = review.get("meta_data")
    if isinstance(meta, dict) and meta.get("verified_purchase"):
        return True
    return bool(review.get("verified_purchase"))


def format_review_line(review: dict[str, Any], max_text_length: int) -> str:
    """Compact ``ID|V/U|rating★|text`` line."""
    verified = "V" if is_verified(review) else "U"
    rating = review.get("rating")
    rating_str = "?" if rating is None or rating == "" else str(rating)
    text = clean_text(review_text(review)[:max_text_length])
    return f"{review.get('id')}|{verified}|{rating_str}★|{text}"


def format_reviews(reviews: list[dict[str, Any]], max_text_length: int) -> str:
    return "".join(format_review_line(r, max_text_length) + "\n" for r in reviews)


def build_review_prompt(
    reviews: list[dict[str, Any]],
    fmt: str = "single",
    max_text_length: int = DEFAULT_TEXT_LIMIT,
    context_header: str | None = None,
) -> dict[str, str]:
    """Build the analysis prompt.

    Args:
        reviews: Review dicts with at least ``id`` and a text field.
        fmt: ``"chat"`` returns ``{"system", "user"}``; ``"single"`` returns ``{"prompt"}``.
        max_text_length: Per-review text truncation.
        context_header: Optional batch context prepended to the review block.
    """
    core = load_prompt("review_core_instructions_v1")
    response_format = load_prompt("review_response_format_v1")
    reviews_block = format_reviews(reviews, max_text_length)
    if context_header:
        reviews_block = f"{context_header}\n\n{reviews_block}"

    if fmt == "chat":
        return {"system": core, "user": f"{reviews_block}\n\n{response_format}"}
    if fmt != "single":
        raise ValueError(f"Unknown prompt format: {fmt!r}")
    return {"prompt": f"{core}\n\n{reviews_block}\n\n{response_format}"}


def build_chat_messages(
    reviews: list[dict[str, Any]],
    provider_key: str,
    context_header: str | None = None,
) -> list[dict[str, str]]:
    """System + user messages for chat-completion providers.

    The provider system message is followed by the shared scoring rubric.
    """
    prompt = build_review_prompt(
        reviews,
        fmt="chat",
        max_text_length=get_provider_text_limit(provider_key),
        context_header=context_header,
    )
    system = f"{get_provider_system_message(provider_key)}\n\n{prompt['system']}"
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": prompt["user"]},
    ]


def summarize_reviews(reviews: list[dict[str, Any]]) -> dict[str, Any]:
    """Whole-set statistics shared with every chunk."""
    total = len(reviews)
    if total == 0:
        return {
            "total_reviews": 0,
            "five_star_percentage": 0.0,
            "verified_percentage": 0.0,
            "avg_text_length": 0,
        }
    five_star = sum(1 for r in reviews if str(r.get("rating")) in ("5", "5.0"))
    verified = sum(1 for r in reviews if is_verified(r))
    lengths = [len(review_text(r)) for r in reviews]
    return {
        "total_reviews": total,
        "five_star_percentage": round(five_star / total * 100, 1),
        "verified_percentage": round(verified / total * 100, 1),
        "avg_text_length": round(sum(lengths) / total),
    }


def build_chunk_context(summary: dict[str, Any], chunk_number: int, total_chunks: int) -> str:
    return render_prompt(
        "review_chunk_context_v1",
        CHUNK_NUMBER=str(chunk_number),
        TOTAL_CHUNKS=str(total_chunks),
        TOTAL_REVIEWS=str(summary["total_reviews"]),
        FIVE_STAR_PERCENTAGE=str(summary["five_star_percentage"]),
        VERIFIED_PERCENTAGE=str(summary["verified_percentage"]),
        AVG_TEXT_LENGTH=str(summary["avg_text_length"]),
    )
