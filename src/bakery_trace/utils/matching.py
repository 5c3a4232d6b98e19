"""Code matching rules shared by every trace query.

Supplier batch codes, intermediate batch codes and product batch codes are
free text and not unique. All searches use case-insensitive substring
containment, so searching "FL" matches "FL-23-001" as well as "fl-99".
"""

from typing import Optional


def normalize_query(query: Optional[str]) -> Optional[str]:
    """Lower-case a search query, returning None for a blank query.

    A blank query matches nothing rather than everything.
    """
    if query is None or not query.strip():
        return None
    return query.lower()


def code_matches(code: Optional[str], query: Optional[str]) -> bool:
    """Return True if ``query`` occurs anywhere in ``code``, ignoring case.

    Args:
        code: Stored code (may be None for incomplete records)
        query: User-entered search text

    Returns:
        True on a case-insensitive substring match

    Example:
        >>> code_matches("FL-23-001", "fl")
        True
        >>> code_matches("FL-23-001", "")
        False
    """
    needle = normalize_query(query)
    if needle is None or code is None:
        return False
    return needle in code.lower()
