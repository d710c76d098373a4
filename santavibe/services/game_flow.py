from __future__ import annotations

import asyncio
import datetime
import html
import random
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy.exc import IntegrityError

from santavibe.db import ExclusionRule, Group, GroupStatus, User, get_session, repo
from santavibe.services.assignment import DEFAULT_MAX_ATTEMPTS, DrawError, generate_assignment
from santavibe.services.feasibility import MIN_PARTICIPANTS, MIN_PARTICIPANTS_ERROR, validate_feasibility

DRAW_COMPLETED_WARNING = "Draw has already been completed for this group"


class DrawTimeoutError(DrawError):
    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            f"The draw did not finish within {timeout:g} seconds. "
            "This may indicate overly restrictive exclusion rules."
        )


@dataclass(frozen=True)
class JoinResult:
    added: bool
    message: str
    group: Group
    user: User


@dataclass(frozen=True)
class LeaveResult:
    removed: bool
    message: str


@dataclass(frozen=True)
class ExclusionResult:
    added: bool
    message: str
    rule: Optional[ExclusionRule] = None


@dataclass(frozen=True)
class DrawCheck:
    is_valid: bool
    can_draw: bool
    participant_count: int
    exclusion_count: int
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AssignmentResult:
    assignments: Dict[int, int]
    participants: List[User]
    group: Group
    seed: int


def format_user_label(user: User) -> str:
    if user.telegram_username:
        return f"@{html.escape(user.telegram_username)}"
    if user.display_name:
        return html.escape(user.display_name)
    return f"user-{user.telegram_id}"


def format_user_display(user: User) -> str:
    if user.display_name:
        return html.escape(user.display_name)
    if user.telegram_username:
        return f"@{html.escape(user.telegram_username)}"
    return f"user-{user.telegram_id}"


def ensure_user(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> User:
    display_name = " ".join(filter(None, [first_name, last_name])) or None
    return repo.upsert_user(session, telegram_id, telegram_username, display_name)


def register_private_chat(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> User:
    user = ensure_user(session, telegram_id, telegram_username, first_name, last_name)
    user.has_private_chat = True
    return user


def join_group(
    session,
    telegram_user_id: int,
    telegram_username: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
    group_telegram_id: int,
    group_title: Optional[str],
) -> JoinResult:
    user = ensure_user(session, telegram_user_id, telegram_username, first_name, last_name)
    group = repo.get_or_create_group(session, group_telegram_id, telegram_user_id, group_title)

    if group.status == GroupStatus.ASSIGNED:
        return JoinResult(False, "The draw for this Secret Santa has already happened.", group, user)

    already_member = repo.is_user_in_group(session, user.id, group.id)
    if already_member:
        return JoinResult(False, "You are already in this Secret Santa game!", group, user)

    if group.status == GroupStatus.LOCKED:
        return JoinResult(False, "This Secret Santa is locked. Ask an admin to unlock it.", group, user)

    repo.add_user_to_group(session, user.id, group.id)
    return JoinResult(True, "You have joined the Secret Santa game!", group, user)


def leave_group(session, group: Group, telegram_user_id: int) -> LeaveResult:
    if group.status == GroupStatus.ASSIGNED:
        return LeaveResult(False, "You can't leave after the draw. Ask an admin to /reset first.")

    user = repo.get_user_by_telegram_id(session, telegram_user_id)
    if not user or not repo.is_user_in_group(session, user.id, group.id):
        return LeaveResult(False, "You are not in this Secret Santa game.")

    dropped = repo.delete_exclusion_rules_for_user(session, group.id, user.id)
    repo.remove_user_from_group(session, user.id, group.id)
    logger.bind(group_id=group.id, user_id=user.id, dropped_rules=dropped).info("Participant left")
    return LeaveResult(True, "You have left the Secret Santa game.")


def list_participants(session, group: Group) -> List[User]:
    return repo.list_group_participants(session, group.id)


def lock_group(session, group: Group) -> bool:
    if group.status != GroupStatus.OPEN:
        return False
    repo.update_group_status(session, group, GroupStatus.LOCKED, locked_at=datetime.datetime.utcnow())
    return True


def unlock_group(session, group: Group) -> bool:
    if group.status != GroupStatus.LOCKED:
        return False
    repo.update_group_status(session, group, GroupStatus.OPEN, locked_at=None)
    return True


def reset_group(session, group: Group) -> None:
    """Forget the draw. Participants and exclusion rules stay."""
    repo.clear_assignments(session, group.id)
    repo.update_group_status(session, group, GroupStatus.OPEN, locked_at=None, assigned_at=None)
    group.last_draw_seed = None
    logger.bind(group_id=group.id).info("Draw reset")


def resolve_participant(session, group: Group, token: str) -> Optional[User]:
    """Find a participant by ``@username`` or by the number shown in /list."""
    token = token.strip()
    participants = list_participants(session, group)

    if token.isdigit():
        position = int(token)
        if 1 <= position <= len(participants):
            return participants[position - 1]
        return None

    username = token.lstrip("@").lower()
    if not username:
        return None
    for user in participants:
        if user.telegram_username and user.telegram_username.lower() == username:
            return user
    return None


def list_exclusions(session, group: Group) -> List[ExclusionRule]:
    return repo.list_exclusion_rules(session, group.id)


def group_draw_inputs(session, group: Group) -> Tuple[List[int], List[Tuple[int, int]]]:
    participant_ids = [user.id for user in list_participants(session, group)]
    exclusion_pairs = [rule.as_pair() for rule in list_exclusions(session, group)]
    return participant_ids, exclusion_pairs


def add_exclusion(
    session,
    group: Group,
    first: User,
    second: User,
    created_by_telegram_id: Optional[int] = None,
) -> ExclusionResult:
    log = logger.bind(group_id=group.id, user_id1=first.id, user_id2=second.id)

    if first.id == second.id:
        return ExclusionResult(False, "Cannot create an exclusion rule for the same person.")
    if group.status == GroupStatus.ASSIGNED:
        return ExclusionResult(False, "Cannot add exclusion rules after the draw has been completed.")

    participant_ids, exclusion_pairs = group_draw_inputs(session, group)
    if first.id not in participant_ids or second.id not in participant_ids:
        return ExclusionResult(False, "Both people must be participants of this Secret Santa.")

    if repo.find_exclusion_rule(session, group.id, first.id, second.id):
        log.warning("Duplicate exclusion rule")
        return ExclusionResult(False, "This exclusion rule already exists.")

    # group size problems are reported by /check, not here
    if len(participant_ids) >= MIN_PARTICIPANTS:
        validation = validate_feasibility(participant_ids, exclusion_pairs + [(first.id, second.id)])
        if not validation.is_valid:
            log.warning("Exclusion rule would make the draw impossible")
            return ExclusionResult(False, "This exclusion rule would make a valid draw impossible.")

    rule = repo.create_exclusion_rule(session, group.id, first.id, second.id, created_by_telegram_id)
    log.bind(rule_id=rule.id).info("Exclusion rule created")
    return ExclusionResult(True, "Exclusion rule added.", rule)


def remove_exclusion(session, group: Group, first: User, second: User) -> bool:
    if group.status == GroupStatus.ASSIGNED:
        return False
    rule = repo.find_exclusion_rule(session, group.id, first.id, second.id)
    if not rule:
        return False
    repo.delete_exclusion_rule(session, rule)
    logger.bind(group_id=group.id, user_id1=first.id, user_id2=second.id).info("Exclusion rule removed")
    return True


def check_draw(session, group: Group) -> DrawCheck:
    participant_ids, exclusion_pairs = group_draw_inputs(session, group)
    errors: List[str] = []
    warnings: List[str] = []

    drawn = group.status == GroupStatus.ASSIGNED
    if drawn:
        warnings.append(DRAW_COMPLETED_WARNING)

    if len(participant_ids) < MIN_PARTICIPANTS:
        errors.append(MIN_PARTICIPANTS_ERROR)
    else:
        errors.extend(validate_feasibility(participant_ids, exclusion_pairs).errors)

    is_valid = not errors
    result = DrawCheck(
        is_valid=is_valid,
        can_draw=is_valid and not drawn,
        participant_count=len(participant_ids),
        exclusion_count=len(exclusion_pairs),
        errors=errors,
        warnings=warnings,
    )
    logger.bind(group_id=group.id).info(
        "Draw check: valid={valid}, can_draw={can_draw}, participants={participants}, exclusions={exclusions}",
        valid=result.is_valid,
        can_draw=result.can_draw,
        participants=result.participant_count,
        exclusions=result.exclusion_count,
    )
    return result


def describe_draw_errors(session, group: Group, errors) -> List[str]:
    """Replace internal participant ids in validator messages with user labels."""
    labels = {user.id: format_user_label(user) for user in list_participants(session, group)}
    described = []
    for error in errors:
        for user_id, label in labels.items():
            error = error.replace(f"Participant {user_id} ", f"{label} ")
        described.append(error)
    return described


def assign_group(
    session,
    group: Group,
    seed: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> AssignmentResult:
    if group.status == GroupStatus.ASSIGNED:
        raise DrawError("Secret Santa has already been drawn for this group.")

    participants = list_participants(session, group)
    missing = [format_user_display(p) for p in participants if not p.has_private_chat]
    if missing:
        raise DrawError(
            "The following participants must start a private chat with the bot: " + ", ".join(missing)
        )

    participant_ids, exclusion_pairs = group_draw_inputs(session, group)

    if seed is None:
        seed = random.randint(1, 2**31 - 1)

    assignments = generate_assignment(
        participant_ids,
        exclusion_pairs,
        seed=seed,
        max_attempts=max_attempts or DEFAULT_MAX_ATTEMPTS,
    )

    try:
        repo.create_assignments(session, group.id, assignments)
    except IntegrityError as exc:
        raise DrawError("Secret Santa assignments already exist for this group.") from exc

    repo.update_group_status(
        session,
        group,
        GroupStatus.ASSIGNED,
        locked_at=group.locked_at,
        assigned_at=datetime.datetime.utcnow(),
    )
    group.last_draw_seed = seed
    logger.bind(group_id=group.id, seed=seed).info("Assignments generated")

    return AssignmentResult(assignments=assignments, participants=participants, group=group, seed=seed)


def get_recipient(session, group: Group, user: User) -> Optional[User]:
    assignment = repo.get_assignment_for_giver(session, group.id, user.id)
    if not assignment:
        return None
    return repo.get_user_by_id(session, assignment.receiver_user_id)


class _DrawJob:
    """One draw for a group chat, run in a worker thread with its own session.

    The search cannot be interrupted. A job cancelled after its deadline keeps
    running until its attempts run out, then rolls back instead of committing.
    """

    def __init__(self, group_telegram_id: int, max_attempts: Optional[int], timeout: float) -> None:
        self.group_telegram_id = group_telegram_id
        self.max_attempts = max_attempts
        self.timeout = timeout
        self._lock = threading.Lock()
        self._cancelled = False
        self._finished = False

    def run(self) -> Optional[AssignmentResult]:
        with get_session() as session:
            group = repo.get_group_by_telegram_id(session, self.group_telegram_id)
            if not group:
                return None
            result = assign_group(session, group, max_attempts=self.max_attempts)
            with self._lock:
                if self._cancelled:
                    raise DrawTimeoutError(self.timeout)
                self._finished = True
            return result

    def cancel(self) -> bool:
        with self._lock:
            if self._finished:
                return False
            self._cancelled = True
            return True


def _discard_outcome(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()


async def run_draw(
    group_telegram_id: int,
    max_attempts: Optional[int] = None,
    timeout: float = 30,
) -> Optional[AssignmentResult]:
    """Draw a group off the event loop, giving up after ``timeout`` seconds.

    Returns None when the chat has no group. A draw that misses the deadline
    raises ``DrawTimeoutError`` and leaves the group untouched.
    """
    job = _DrawJob(group_telegram_id, max_attempts, timeout)
    task = asyncio.ensure_future(asyncio.to_thread(job.run))
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except asyncio.TimeoutError:
        if not job.cancel():
            return await task
        task.add_done_callback(_discard_outcome)
        logger.bind(group_telegram_id=group_telegram_id, timeout=timeout).error("Draw timed out")
        raise DrawTimeoutError(timeout) from None
