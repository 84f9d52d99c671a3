"""
Domain set comparison — requested hostnames vs. a certificate's DNS names.

Both sides are sequences whose order carries no meaning. Duplicates do
count: ["a.com", "a.com"] is not equal to ["a.com", "b.com"].
"""

from __future__ import annotations

from collections.abc import Sequence


def equal_sets(requested: Sequence[str], actual: Sequence[str]) -> bool:
    """
    True iff both sequences hold the same names, ignoring order.

    Sorts copies; the caller's sequences are never reordered.

    >>> equal_sets(["a.com", "b.com"], ["b.com", "a.com"])
    True
    >>> equal_sets(["a.com"], ["a.com", "b.com"])
    False
    """
    if len(requested) != len(actual):
        return False
    return sorted(requested) == sorted(actual)
