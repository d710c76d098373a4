from __future__ import annotations

import datetime
from typing import Dict, List, Optional

from sqlalchemy import and_, delete, func, or_, select

from santavibe.db.models import (
    Assignment,
    ExclusionRule,
    Group,
    GroupStatus,
    User,
    group_participants,
)


def get_user_by_telegram_id(session, telegram_id: int) -> Optional[User]:
    return session.scalar(select(User).where(User.telegram_id == telegram_id))


def get_user_by_id(session, user_id: int) -> Optional[User]:
    return session.get(User, user_id)


def upsert_user(
    session,
    telegram_id: int,
    telegram_username: Optional[str],
    display_name: Optional[str],
) -> User:
    user = get_user_by_telegram_id(session, telegram_id)
    if user:
        user.telegram_username = telegram_username
        user.display_name = display_name
        return user

    user = User(
        telegram_id=telegram_id,
        telegram_username=telegram_username,
        display_name=display_name,
    )
    session.add(user)
    session.flush()
    return user


def get_group_by_telegram_id(session, telegram_id: int) -> Optional[Group]:
    return session.scalar(select(Group).where(Group.telegram_id == telegram_id))


def get_or_create_group(
    session,
    telegram_id: int,
    created_by_telegram_id: Optional[int],
    title: Optional[str],
) -> Group:
    group = get_group_by_telegram_id(session, telegram_id)
    if group:
        if title and group.title != title:
            group.title = title
        return group

    group = Group(
        telegram_id=telegram_id,
        created_by_telegram_id=created_by_telegram_id,
        title=title,
    )
    session.add(group)
    session.flush()
    return group


def is_user_in_group(session, user_id: int, group_id: int) -> bool:
    return session.scalar(
        select(func.count())
        .select_from(group_participants)
        .where(
            and_(group_participants.c.user_id == user_id, group_participants.c.group_id == group_id)
        )
    ) > 0


def add_user_to_group(session, user_id: int, group_id: int) -> bool:
    if is_user_in_group(session, user_id, group_id):
        return False
    session.execute(group_participants.insert().values(user_id=user_id, group_id=group_id))
    return True


def remove_user_from_group(session, user_id: int, group_id: int) -> bool:
    result = session.execute(
        group_participants.delete().where(
            and_(group_participants.c.user_id == user_id, group_participants.c.group_id == group_id)
        )
    )
    return bool(result.rowcount)


def list_group_participants(session, group_id: int) -> List[User]:
    return list(
        session.scalars(
            select(User)
            .join(group_participants, group_participants.c.user_id == User.id)
            .where(group_participants.c.group_id == group_id)
            .order_by(group_participants.c.joined_at, User.id)
        ).all()
    )


def update_group_status(
    session,
    group: Group,
    status: GroupStatus,
    locked_at: Optional[datetime.datetime] = None,
    assigned_at: Optional[datetime.datetime] = None,
) -> None:
    group.status = status
    group.locked_at = locked_at
    group.assigned_at = assigned_at


def create_assignments(session, group_id: int, assignments: Dict[int, int]) -> None:
    session.add_all(
        [
            Assignment(group_id=group_id, giver_user_id=giver_id, receiver_user_id=receiver_id)
            for giver_id, receiver_id in assignments.items()
        ]
    )
    session.flush()


def list_assignments(session, group_id: int) -> List[Assignment]:
    return list(session.scalars(select(Assignment).where(Assignment.group_id == group_id)).all())


def get_assignment_for_giver(session, group_id: int, giver_user_id: int) -> Optional[Assignment]:
    return session.scalar(
        select(Assignment).where(
            and_(Assignment.group_id == group_id, Assignment.giver_user_id == giver_user_id)
        )
    )


def clear_assignments(session, group_id: int) -> None:
    session.execute(delete(Assignment).where(Assignment.group_id == group_id))


def _pair_clause(user_id1: int, user_id2: int):
    return or_(
        and_(ExclusionRule.user_id1 == user_id1, ExclusionRule.user_id2 == user_id2),
        and_(ExclusionRule.user_id1 == user_id2, ExclusionRule.user_id2 == user_id1),
    )


def find_exclusion_rule(session, group_id: int, user_id1: int, user_id2: int) -> Optional[ExclusionRule]:
    """Look a rule up in either order."""
    return session.scalar(
        select(ExclusionRule).where(
            and_(ExclusionRule.group_id == group_id, _pair_clause(user_id1, user_id2))
        )
    )


def create_exclusion_rule(
    session,
    group_id: int,
    user_id1: int,
    user_id2: int,
    created_by_telegram_id: Optional[int],
) -> ExclusionRule:
    rule = ExclusionRule(
        group_id=group_id,
        user_id1=user_id1,
        user_id2=user_id2,
        created_by_telegram_id=created_by_telegram_id,
    )
    session.add(rule)
    session.flush()
    return rule


def delete_exclusion_rule(session, rule: ExclusionRule) -> None:
    session.delete(rule)
    session.flush()


def list_exclusion_rules(session, group_id: int) -> List[ExclusionRule]:
    return list(
        session.scalars(
            select(ExclusionRule).where(ExclusionRule.group_id == group_id).order_by(ExclusionRule.id)
        ).all()
    )


def delete_exclusion_rules_for_user(session, group_id: int, user_id: int) -> int:
    result = session.execute(
        delete(ExclusionRule).where(
            and_(
                ExclusionRule.group_id == group_id,
                or_(ExclusionRule.user_id1 == user_id, ExclusionRule.user_id2 == user_id),
            )
        )
    )
    return result.rowcount or 0
