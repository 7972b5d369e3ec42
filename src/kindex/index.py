"""Keyword index maintenance.

Computes the minimal set of index membership changes between two keyword
lists. Each element of the delta maps to one independent set command.
"""

from typing import Iterable, NamedTuple


class KeywordDelta(NamedTuple):
    """Keywords whose index sets must gain or lose a node id."""

    to_add: list[str]
    to_remove: list[str]

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


def _missing_from(source: Iterable[str], other: set[str]) -> list[str]:
    """Distinct elements of source absent from other, in source order."""
    result: list[str] = []
    seen: set[str] = set()
    for keyword in source:
        if keyword in other or keyword in seen:
            continue
        seen.add(keyword)
        result.append(keyword)
    return result


def diff_keywords(old: Iterable[str], new: Iterable[str]) -> KeywordDelta:
    """Compute (to_add, to_remove) between an old and a new keyword set.

    Create passes an empty old set, delete an empty new set.
    """
    old_list = list(old)
    new_list = list(new)
    return KeywordDelta(
        to_add=_missing_from(new_list, set(old_list)),
        to_remove=_missing_from(old_list, set(new_list)),
    )
