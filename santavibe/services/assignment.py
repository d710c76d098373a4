from __future__ import annotations

import random
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Set, Tuple

from loguru import logger

from santavibe.services.exclusions import ExclusionIndex, ExclusionPair
from santavibe.services.feasibility import split_into_cycles, validate_feasibility

DEFAULT_MAX_ATTEMPTS = 1000


class DrawError(RuntimeError):
    pass


class DrawValidationError(DrawError):
    def __init__(self, reasons: Sequence[str]) -> None:
        self.reasons: Tuple[str, ...] = tuple(reasons)
        super().__init__("Draw validation failed: " + ", ".join(self.reasons))


class GenerationExhaustedError(DrawError):
    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            f"Failed to generate valid assignments after {attempts} attempts. "
            "This may indicate overly restrictive exclusion rules."
        )


class _DrawAttempt:
    """Search state for one shuffled giver order; thrown away after the attempt."""

    def __init__(self, givers: List[Hashable], index: ExclusionIndex, rng: random.Random) -> None:
        self.givers = givers
        self.index = index
        self.rng = rng
        self.assignments: Dict[Hashable, Hashable] = {}
        self.used_recipients: Set[Hashable] = set()

    def _accepts(self, giver: Hashable, recipient: Hashable) -> bool:
        if recipient == giver or recipient in self.used_recipients:
            return False
        if self.index.is_forbidden(giver, recipient):
            return False
        # recipient already gives to this giver: would close a two-person cycle
        return self.assignments.get(recipient) != giver

    def backtrack(self, position: int = 0) -> bool:
        if position == len(self.givers):
            return True

        giver = self.givers[position]
        choices = [recipient for recipient in self.givers if self._accepts(giver, recipient)]
        self.rng.shuffle(choices)
        for recipient in choices:
            self.assignments[giver] = recipient
            self.used_recipients.add(recipient)
            if self.backtrack(position + 1):
                return True
            self.used_recipients.discard(recipient)
            self.assignments.pop(giver, None)
        return False


def generate_assignment(
    participant_ids: Sequence[Hashable],
    exclusions: Optional[Iterable[ExclusionPair]] = None,
    seed: Optional[int] = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    rng: Optional[random.Random] = None,
) -> Dict[Hashable, Hashable]:
    """Draw a giver -> recipient mapping for the whole group.

    Nobody draws themselves, no two people draw each other and no excluded
    pair is used in either direction. Each attempt reshuffles the giver order
    and walks it depth-first with randomized candidates, backtracking when a
    giver runs out of options.

    Raises ``DrawValidationError`` when the group fails the feasibility
    pre-check and ``GenerationExhaustedError`` when ``max_attempts`` searches
    all come back empty.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    participants = list(participant_ids)
    exclusion_pairs = list(exclusions or [])
    log = logger.bind(participant_count=len(participants), exclusion_count=len(exclusion_pairs))
    log.info(
        "Executing draw for {participants} participants with {exclusions} exclusion rules",
        participants=len(participants),
        exclusions=len(exclusion_pairs),
    )

    validation = validate_feasibility(participants, exclusion_pairs)
    if not validation.is_valid:
        raise DrawValidationError(validation.errors)

    if rng is None:
        rng = random.Random(seed)
    index = ExclusionIndex.build(exclusion_pairs)

    for attempt in range(1, max_attempts + 1):
        givers = list(participants)
        rng.shuffle(givers)
        draw = _DrawAttempt(givers, index, rng)
        if draw.backtrack():
            log.info(
                "Draw succeeded on attempt {attempt} with {cycles} cycle(s)",
                attempt=attempt,
                cycles=len(split_into_cycles(draw.assignments)),
            )
            return draw.assignments

    log.error("Draw failed after {attempts} attempts", attempts=max_attempts)
    raise GenerationExhaustedError(max_attempts)
