"""Slug normalization for tenant and template identifiers."""

from backend.chatbot.errors import InvalidSlug

MIN_SLUG_LENGTH = 3
MAX_SLUG_LENGTH = 63


def normalize_slug(value: str) -> str:
    """Convert arbitrary input to a URL-safe slug.

    Rules:
    - trim and lowercase
    - letters/digits kept
    - whitespace, '_' and '-' become a single '-'
    - everything else dropped
    - leading/trailing '-' stripped
    - length must be 3..63

    Raises:
        InvalidSlug: If nothing usable remains or the length is out of range
    """
    value = value.strip()
    if not value:
        raise InvalidSlug()

    out: list[str] = []
    last_was_dash = False
    for ch in value:
        if ch.isalpha() or ch.isdigit():
            out.append(ch.lower())
            last_was_dash = False
        elif ch.isspace() or ch in "_-":
            if not last_was_dash and out:
                out.append("-")
                last_was_dash = True

    slug = "".join(out).strip("-")

    if not MIN_SLUG_LENGTH <= len(slug) <= MAX_SLUG_LENGTH:
        raise InvalidSlug()
    return slug
