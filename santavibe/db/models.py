from __future__ import annotations

import datetime
import enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class GroupStatus(str, enum.Enum):
    OPEN = "open"
    LOCKED = "locked"
    ASSIGNED = "assigned"


group_participants = Table(
    "group_participants",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", Integer, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "joined_at",
        DateTime(timezone=True),
        nullable=False,
        default=datetime.datetime.utcnow,
        server_default=func.now(),
    ),
    UniqueConstraint("user_id", "group_id", name="uq_group_participants_user_group"),
)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    telegram_username = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    has_private_chat = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    groups = relationship("Group", secondary=group_participants, back_populates="participants")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, telegram_id={self.telegram_id}, username={self.telegram_username})>"


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    title = Column(String, nullable=True)
    status = Column(
        Enum(GroupStatus, name="group_status", values_callable=lambda statuses: [s.value for s in statuses]),
        nullable=False,
        default=GroupStatus.OPEN,
        server_default=GroupStatus.OPEN.value,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    created_by_telegram_id = Column(BigInteger, nullable=True)
    last_draw_seed = Column(BigInteger, nullable=True)

    participants = relationship(
        "User",
        secondary=group_participants,
        back_populates="groups",
        order_by=[group_participants.c.joined_at, User.id],
    )
    assignments = relationship("Assignment", back_populates="group", cascade="all, delete-orphan")
    exclusion_rules = relationship("ExclusionRule", back_populates="group", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, telegram_id={self.telegram_id}, status={self.status})>"


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    giver_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    group = relationship("Group", back_populates="assignments")
    giver = relationship("User", foreign_keys=[giver_user_id])
    receiver = relationship("User", foreign_keys=[receiver_user_id])

    __table_args__ = (
        UniqueConstraint("group_id", "giver_user_id", name="uq_assignments_group_giver"),
        UniqueConstraint("group_id", "receiver_user_id", name="uq_assignments_group_receiver"),
    )


class ExclusionRule(Base):
    __tablename__ = "exclusion_rules"

    id = Column(Integer, primary_key=True)
    group_id = Column(Integer, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    user_id1 = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_id2 = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_by_telegram_id = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    group = relationship("Group", back_populates="exclusion_rules")
    user1 = relationship("User", foreign_keys=[user_id1])
    user2 = relationship("User", foreign_keys=[user_id2])

    __table_args__ = (
        UniqueConstraint("group_id", "user_id1", "user_id2", name="uq_exclusion_rules_group_pair"),
        CheckConstraint("user_id1 <> user_id2", name="ck_exclusion_rules_distinct_users"),
    )

    def as_pair(self) -> tuple[int, int]:
        return self.user_id1, self.user_id2
