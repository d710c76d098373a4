from santavibe.db.models import (
    Assignment,
    Base,
    ExclusionRule,
    Group,
    GroupStatus,
    User,
    group_participants,
)
from santavibe.db.session import SessionLocal, get_session, init_engine

__all__ = [
    "Assignment",
    "Base",
    "ExclusionRule",
    "Group",
    "GroupStatus",
    "User",
    "group_participants",
    "SessionLocal",
    "get_session",
    "init_engine",
]
