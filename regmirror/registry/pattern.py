"""Repository name filters."""

import re

from .errors import InvalidPatternError


def anchor(raw: str) -> str:
    """Wrap a pattern in ``^``/``$`` unless it already carries them."""
    if not raw.startswith("^"):
        raw = f"^{raw}"
    if not raw.endswith("$"):
        raw = f"{raw}$"
    return raw


def compile_filter(raw: str) -> "re.Pattern[str]":
    """Compile a repository filter that matches whole names only.

    Filter ``foo`` therefore matches ``foo`` but not ``myfoo/bar``. Use
    ``pattern.fullmatch(name)`` when testing names so that alternations
    such as ``a|b`` are held to the whole name as well.

    Args:
        raw: Regular expression, optionally anchored already

    Returns:
        Compiled, anchored pattern

    Raises:
        InvalidPatternError: If the anchored expression does not compile
    """
    anchored = anchor(raw)
    try:
        return re.compile(anchored)
    except re.error as e:
        raise InvalidPatternError(f"invalid repository filter '{raw}': {e}") from e
