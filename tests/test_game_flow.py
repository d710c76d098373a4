import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from santavibe.db import GroupStatus, repo
from santavibe.db.models import Base
from santavibe.services import DrawError, DrawValidationError, GenerationExhaustedError, find_violations, game_flow
from santavibe.services.feasibility import MIN_PARTICIPANTS_ERROR

GROUP_TELEGRAM_ID = -1001


def create_session():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)()


def join(session, telegram_id, username, private_chat=True):
    result = game_flow.join_group(
        session, telegram_id, username, username.title(), None, GROUP_TELEGRAM_ID, "Office"
    )
    if private_chat:
        game_flow.register_private_chat(session, telegram_id, username, username.title(), None)
    return result


def create_group(session, *usernames, private_chat=True):
    users = [join(session, 100 + number, name, private_chat).user for number, name in enumerate(usernames)]
    return repo.get_group_by_telegram_id(session, GROUP_TELEGRAM_ID), users


def test_join_group_adds_participant_once():
    session = create_session()
    first = join(session, 1, "alice")
    second = join(session, 1, "alice")
    assert first.added
    assert not second.added
    assert [user.telegram_username for user in game_flow.list_participants(session, first.group)] == ["alice"]


def test_locked_group_refuses_newcomers():
    session = create_session()
    group, _ = create_group(session, "alice", "bob")
    assert game_flow.lock_group(session, group)
    assert not join(session, 9, "zoe").added
    assert game_flow.unlock_group(session, group)
    assert join(session, 9, "zoe").added


def test_resolve_participant_by_username_or_number():
    session = create_session()
    group, (alice, bob, _) = create_group(session, "alice", "bob", "carol")
    assert game_flow.resolve_participant(session, group, "@ALICE") == alice
    assert game_flow.resolve_participant(session, group, "bob") == bob
    assert game_flow.resolve_participant(session, group, "2") == bob
    assert game_flow.resolve_participant(session, group, "4") is None
    assert game_flow.resolve_participant(session, group, "@nobody") is None
    assert game_flow.resolve_participant(session, group, "@") is None


def test_add_exclusion():
    session = create_session()
    group, (alice, bob, carol, dave) = create_group(session, "alice", "bob", "carol", "dave")

    result = game_flow.add_exclusion(session, group, alice, bob, created_by_telegram_id=100)
    assert result.added
    assert result.rule.as_pair() == (alice.id, bob.id)
    assert [rule.as_pair() for rule in game_flow.list_exclusions(session, group)] == [(alice.id, bob.id)]


def test_add_exclusion_refusals():
    session = create_session()
    group, (alice, bob, carol, dave) = create_group(session, "alice", "bob", "carol", "dave")
    outsider = repo.upsert_user(session, 999, "eve", "Eve")

    assert game_flow.add_exclusion(session, group, alice, bob).added
    assert not game_flow.add_exclusion(session, group, bob, alice).added
    assert not game_flow.add_exclusion(session, group, alice, alice).added
    assert not game_flow.add_exclusion(session, group, alice, outsider).added

    assert game_flow.add_exclusion(session, group, alice, carol).added
    isolating = game_flow.add_exclusion(session, group, alice, dave)
    assert not isolating.added
    assert "impossible" in isolating.message
    assert len(game_flow.list_exclusions(session, group)) == 2


def test_exclusions_can_be_added_before_the_group_is_full():
    session = create_session()
    group, (alice, bob) = create_group(session, "alice", "bob")
    assert game_flow.add_exclusion(session, group, alice, bob).added


def test_remove_exclusion_in_either_order():
    session = create_session()
    group, (alice, bob, _, _) = create_group(session, "alice", "bob", "carol", "dave")
    game_flow.add_exclusion(session, group, alice, bob)
    assert game_flow.remove_exclusion(session, group, bob, alice)
    assert not game_flow.remove_exclusion(session, group, bob, alice)
    assert game_flow.list_exclusions(session, group) == []


def test_check_draw():
    session = create_session()
    group, (alice, bob) = create_group(session, "alice", "bob")
    small = game_flow.check_draw(session, group)
    assert not small.is_valid
    assert not small.can_draw
    assert small.errors == [MIN_PARTICIPANTS_ERROR]

    join(session, 200, "carol")
    join(session, 201, "dave")
    game_flow.add_exclusion(session, group, alice, bob)
    ready = game_flow.check_draw(session, group)
    assert ready.is_valid and ready.can_draw
    assert ready.participant_count == 4
    assert ready.exclusion_count == 1
    assert ready.errors == [] and ready.warnings == []


def test_assign_group_persists_a_valid_draw():
    session = create_session()
    group, users = create_group(session, "alice", "bob", "carol", "dave", "erin")
    alice, bob, carol, dave, _ = users
    game_flow.add_exclusion(session, group, alice, bob)
    game_flow.add_exclusion(session, group, carol, dave)

    result = game_flow.assign_group(session, group, seed=2024)

    participant_ids = [user.id for user in users]
    exclusions = [(alice.id, bob.id), (carol.id, dave.id)]
    assert find_violations(participant_ids, exclusions, result.assignments) == []
    assert group.status == GroupStatus.ASSIGNED
    assert group.last_draw_seed == 2024
    assert {(a.giver_user_id, a.receiver_user_id) for a in repo.list_assignments(session, group.id)} == set(
        result.assignments.items()
    )
    assert game_flow.get_recipient(session, group, alice).id == result.assignments[alice.id]

    check = game_flow.check_draw(session, group)
    assert not check.can_draw
    assert check.warnings == [game_flow.DRAW_COMPLETED_WARNING]


def test_assign_group_twice_is_refused():
    session = create_session()
    group, _ = create_group(session, "alice", "bob", "carol")
    game_flow.assign_group(session, group)
    with pytest.raises(DrawError):
        game_flow.assign_group(session, group)


def test_assign_group_requires_private_chats():
    session = create_session()
    group, _ = create_group(session, "alice", "bob", "carol", private_chat=False)
    with pytest.raises(DrawError) as excinfo:
        game_flow.assign_group(session, group)
    assert "private chat" in str(excinfo.value)
    assert group.status == GroupStatus.OPEN


def test_assign_group_surfaces_exhausted_search():
    session = create_session()
    group, (alice, bob, _) = create_group(session, "alice", "bob", "carol")
    game_flow.add_exclusion(session, group, alice, bob)
    with pytest.raises(GenerationExhaustedError):
        game_flow.assign_group(session, group, max_attempts=5)
    assert group.status == GroupStatus.OPEN
    assert repo.list_assignments(session, group.id) == []


def test_reset_keeps_participants_and_exclusions():
    session = create_session()
    group, (alice, bob, _, _) = create_group(session, "alice", "bob", "carol", "dave")
    game_flow.add_exclusion(session, group, alice, bob)
    game_flow.assign_group(session, group)

    game_flow.reset_group(session, group)

    assert group.status == GroupStatus.OPEN
    assert group.last_draw_seed is None
    assert repo.list_assignments(session, group.id) == []
    assert len(game_flow.list_participants(session, group)) == 4
    assert len(game_flow.list_exclusions(session, group)) == 1


def test_leave_group_drops_exclusions():
    session = create_session()
    group, (alice, bob, carol, _) = create_group(session, "alice", "bob", "carol", "dave")
    game_flow.add_exclusion(session, group, alice, bob)
    game_flow.add_exclusion(session, group, carol, bob)

    result = game_flow.leave_group(session, group, bob.telegram_id)

    assert result.removed
    assert bob not in game_flow.list_participants(session, group)
    assert game_flow.list_exclusions(session, group) == []
    assert not game_flow.leave_group(session, group, bob.telegram_id).removed


def test_leave_after_draw_is_refused():
    session = create_session()
    group, (alice, _, _) = create_group(session, "alice", "bob", "carol")
    game_flow.assign_group(session, group)
    assert not game_flow.leave_group(session, group, alice.telegram_id).removed


def test_participants_are_listed_in_join_order():
    session = create_session()
    zed = repo.upsert_user(session, 1, "zed", "Zed")
    group, (alice, bob) = create_group(session, "alice", "bob")
    join(session, 1, "zed")

    assert zed.id < alice.id
    assert game_flow.list_participants(session, group) == [alice, bob, zed]
    assert game_flow.resolve_participant(session, group, "1") == alice
    assert game_flow.resolve_participant(session, group, "3") == zed


def test_draw_errors_name_participants_by_label():
    session = create_session()
    group, (alice, bob, carol) = create_group(session, "alice", "bob", "carol")
    repo.create_exclusion_rule(session, group.id, alice.id, bob.id, None)
    repo.create_exclusion_rule(session, group.id, alice.id, carol.id, None)
    expected = ["@alice has no valid recipients due to exclusion rules"]

    with pytest.raises(DrawValidationError) as excinfo:
        game_flow.assign_group(session, group)
    assert game_flow.describe_draw_errors(session, group, excinfo.value.reasons) == expected

    check = game_flow.check_draw(session, group)
    assert game_flow.describe_draw_errors(session, group, check.errors) == expected
