"""
Three-way classification of declared versus actual identifiers.
"""

from dataclasses import dataclass
from typing import FrozenSet, Generic, Hashable, Iterable, TypeVar

T = TypeVar("T", bound=Hashable)


@dataclass(frozen=True)
class SetDiff(Generic[T]):
    """
    Result of comparing a declared set against an actual set.

    novel: only declared, must be created remotely
    untracked: only actual, adopted and never deleted
    common: in both, candidates for reconciliation
    """

    novel: FrozenSet[T]
    untracked: FrozenSet[T]
    common: FrozenSet[T]

    @property
    def is_equal(self) -> bool:
        return not self.novel and not self.untracked


def diff(declared: Iterable[T], actual: Iterable[T]) -> SetDiff[T]:
    declared_set = frozenset(declared)
    actual_set = frozenset(actual)
    return SetDiff(
        novel=declared_set - actual_set,
        untracked=actual_set - declared_set,
        common=declared_set & actual_set,
    )
