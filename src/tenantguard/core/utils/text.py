"""Text processing utilities."""

import re

from tenantguard.core.constants import MAX_SLUG_LENGTH


def generate_slug(name: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Generate a URL-safe slug from a name.

    Converts the input string to a slug usable as a subdomain label:
    lowercase ASCII letters, digits and single hyphens, with no leading
    or trailing hyphen, truncated to ``max_length``.

    Args:
        name: The input string to slugify
        max_length: Maximum length of output slug (default 63)

    Returns:
        URL-safe lowercase slug (empty if nothing usable remains)

    Examples:
        >>> generate_slug("Acme Corp")
        'acme-corp'
        >>> generate_slug("Hello! World_2024")
        'hello-world-2024'
    """
    slug = name.lower().strip()
    slug = re.sub(r"[^a-z0-9\s_-]", "", slug)
    slug = re.sub(r"[-\s_]+", "-", slug)
    return slug[:max_length].strip("-")


def suffixed_slug(slug: str, suffix: int, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Append a numeric suffix, trimming the base so the result still fits.

    Examples:
        >>> suffixed_slug("acme-corp", 1)
        'acme-corp-1'
    """
    tail = f"-{suffix}"
    return f"{slug[: max_length - len(tail)].rstrip('-')}{tail}"
