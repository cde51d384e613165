"""Name canonicalization used for dedupe keys and search ranking."""

import re
from typing import Any

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_name(value: Any) -> str:
    """Canonicalize free-text person or place names.

    Lowercases the input, replaces every character outside ``[a-z0-9 ]``
    with a space, collapses whitespace runs and trims the result.

    Args:
        value: Arbitrary human-entered text (``None`` is accepted)

    Returns:
        str: Canonical form, empty string for empty input
    """
    if value is None:
        return ""
    text = str(value).lower()
    if not text:
        return ""
    text = _NON_ALNUM.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()
