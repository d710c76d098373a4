from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from santavibe.services.exclusions import ExclusionIndex, ExclusionPair

MIN_PARTICIPANTS = 3

MIN_PARTICIPANTS_ERROR = "Minimum 3 participants required for draw"
DUPLICATE_PARTICIPANTS_ERROR = "Duplicate participant IDs detected"


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: Tuple[str, ...] = ()


def validate_feasibility(
    participant_ids: Sequence[Hashable],
    exclusions: Optional[Iterable[ExclusionPair]] = None,
) -> ValidationResult:
    """Cheap pre-check run before a draw.

    Rejects groups that can never be drawn: too few people, repeated
    identifiers, or someone excluded from everybody else. Passing this check
    does not guarantee a draw exists; two-person cycles are only ruled out
    by the search itself.
    """
    participants = list(participant_ids)
    exclusion_pairs = list(exclusions or [])

    if len(participants) < MIN_PARTICIPANTS:
        return ValidationResult(False, (MIN_PARTICIPANTS_ERROR,))

    if len(set(participants)) != len(participants):
        return ValidationResult(False, (DUPLICATE_PARTICIPANTS_ERROR,))

    index = ExclusionIndex.build(exclusion_pairs)
    for giver in participants:
        if not index.allowed_recipients(giver, participants):
            logger.bind(
                participant_count=len(participants),
                exclusion_count=len(exclusion_pairs),
            ).warning("Draw validation failed: participant {participant} has no valid recipients", participant=giver)
            return ValidationResult(
                False,
                (f"Participant {giver} has no valid recipients due to exclusion rules",),
            )

    return ValidationResult(True)


def split_into_cycles(assignment: Mapping[Hashable, Hashable]) -> List[List[Hashable]]:
    cycles: List[List[Hashable]] = []
    seen = set()
    for start in assignment:
        if start in seen:
            continue
        cycle = []
        current = start
        while current not in seen and current in assignment:
            seen.add(current)
            cycle.append(current)
            current = assignment[current]
        cycles.append(cycle)
    return cycles


def find_violations(
    participant_ids: Sequence[Hashable],
    exclusions: Optional[Iterable[ExclusionPair]],
    assignment: Mapping[Hashable, Hashable],
) -> List[str]:
    """Return every rule a finished draw breaks; an empty list means it is valid."""
    participants = set(participant_ids)
    index = ExclusionIndex.build(exclusions)
    violations: List[str] = []

    if set(assignment.keys()) != participants:
        violations.append("Givers do not match the participant list")
    if set(assignment.values()) != participants or len(set(assignment.values())) != len(assignment):
        violations.append("Recipients do not match the participant list exactly once each")

    receivers: Dict[Hashable, Hashable] = dict(assignment)
    for giver, recipient in receivers.items():
        if giver == recipient:
            violations.append(f"Participant {giver} is assigned to themselves")
        elif receivers.get(recipient) == giver:
            violations.append(f"Participants {giver} and {recipient} are assigned to each other")
        if index.is_forbidden(giver, recipient):
            violations.append(f"Participant {giver} is excluded from giving to {recipient}")

    return violations
