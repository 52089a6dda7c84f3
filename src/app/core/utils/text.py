"""Text processing utilities."""

import re

from app.core.constants import MAX_SLUG_LENGTH


def generate_slug(name: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Generate a URL-safe slug from a name.

    Args:
        name: The input string to slugify
        max_length: Maximum length of output slug (default 63)

    Returns:
        URL-safe lowercase slug

    Examples:
        >>> generate_slug("Maple Leaf Immigration")
        'maple-leaf-immigration'
        >>> generate_slug("Hello! World@2024")
        'hello-world2024'
    """
    slug = name.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s_]+", "-", slug)
    return slug.strip("-")[:max_length]


def normalize_domain(domain: str) -> str:
    """Lowercase a tenant domain and strip scheme, path and whitespace.

    Examples:
        >>> normalize_domain("  https://Acme.Example.com/login ")
        'acme.example.com'
    """
    value = domain.strip().lower()
    value = re.sub(r"^[a-z]+://", "", value)
    return value.split("/", 1)[0]


def email_local_part(email: str) -> str:
    """Return the slugified part of an email address before the ``@``."""
    return generate_slug(email.split("@", 1)[0]) or "user"
