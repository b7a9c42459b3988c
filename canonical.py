import re
from typing import Tuple

# ====================================================================
# Ordered alias table: the first rule whose substrings all occur in the
# normalized name wins.

CANONICAL_ALIASES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("greek", "yogurt"), "greek yogurt"),
    (("cottage", "cheese"), "cottage cheese"),
    (("whey",), "whey protein isolate"),
    (("egg", "white"), "egg whites"),
    (("olive", "oil"), "olive oil"),
    (("peanut", "butter"), "peanut butter"),
    (("oat",), "oats"),
    (("banana",), "banana"),
)

_PARENS = re.compile(r"\([^)]*\)")
_SPACES = re.compile(r"\s+")


def normalize_name(name) -> str:
    if not isinstance(name, str):
        return ""
    s = _PARENS.sub("", name.lower())
    return _SPACES.sub(" ", s).strip()


def canonical_name(name) -> str:
    """
    Map a display name to the identity key used for duplicate detection,
    e.g. "Greek Yogurt (Non-Fat)" -> "greek yogurt".
    Never raises; unknown names fall back to their normalized text.
    """
    n = normalize_name(name)
    for needles, token in CANONICAL_ALIASES:
        if all(needle in n for needle in needles):
            return token
    return n
