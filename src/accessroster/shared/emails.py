"""Email normalization."""


def normalize_email(email: str | None) -> str:
    """Return the comparison key for an email: trimmed and lower-cased.

    Args:
        email: Raw email, possibly None.

    Returns:
        Normalized email, empty string when nothing usable was given.
    """
    return str(email or "").strip().lower()


def email_domain(email: str | None) -> str:
    """Return the normalized domain part of an email, or empty string."""
    norm = normalize_email(email)
    if "@" not in norm:
        return ""
    return norm.rsplit("@", 1)[1]
