from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Hashable, Iterable, List, Optional, Sequence, Tuple

ExclusionPair = Tuple[Hashable, Hashable]


@dataclass(frozen=True)
class ExclusionIndex:
    """Bidirectional lookup over forbidden giver/recipient pairs.

    Every rule is stored in both orderings, so ``(a, b)`` and ``(b, a)``
    given as input collapse into the same rule.
    """

    pairs: FrozenSet[Tuple[Hashable, Hashable]]

    @classmethod
    def build(cls, exclusions: Optional[Iterable[ExclusionPair]]) -> ExclusionIndex:
        pairs = set()
        for first, second in exclusions or ():
            pairs.add((first, second))
            pairs.add((second, first))
        return cls(pairs=frozenset(pairs))

    def is_forbidden(self, giver: Hashable, recipient: Hashable) -> bool:
        return (giver, recipient) in self.pairs

    def allowed_recipients(self, giver: Hashable, participants: Sequence[Hashable]) -> List[Hashable]:
        return [
            candidate
            for candidate in participants
            if candidate != giver and not self.is_forbidden(giver, candidate)
        ]

    def __len__(self) -> int:
        # self-pairs are stored once, everything else twice
        loops = sum(1 for first, second in self.pairs if first == second)
        return loops + (len(self.pairs) - loops) // 2
