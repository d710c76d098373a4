from santavibe.services.feasibility import (
    DUPLICATE_PARTICIPANTS_ERROR,
    MIN_PARTICIPANTS_ERROR,
    ValidationResult,
    find_violations,
    split_into_cycles,
    validate_feasibility,
)


def test_three_participants_without_exclusions_are_valid():
    result = validate_feasibility(["user1", "user2", "user3"], [])
    assert result == ValidationResult(True, ())


def test_fewer_than_three_participants_are_invalid():
    for participants in ([], ["user1"], ["user1", "user2"]):
        result = validate_feasibility(participants, [])
        assert not result.is_valid
        assert result.errors == (MIN_PARTICIPANTS_ERROR,)


def test_size_is_checked_before_duplicates():
    result = validate_feasibility(["user1", "user1"], [])
    assert result.errors == (MIN_PARTICIPANTS_ERROR,)


def test_duplicate_participants_are_invalid():
    result = validate_feasibility(["user1", "user2", "user1", "user3"], [])
    assert not result.is_valid
    assert result.errors == (DUPLICATE_PARTICIPANTS_ERROR,)


def test_participant_excluded_from_all_is_named():
    participants = ["user1", "user2", "user3", "user4"]
    exclusions = [("user1", "user2"), ("user3", "user1"), ("user1", "user4")]
    result = validate_feasibility(participants, exclusions)
    assert not result.is_valid
    assert result.errors == ("Participant user1 has no valid recipients due to exclusion rules",)


def test_some_exclusions_are_valid():
    participants = [f"user{i}" for i in range(1, 11)]
    exclusions = [("user1", "user2"), ("user3", "user4"), ("user5", "user6")]
    assert validate_feasibility(participants, exclusions).is_valid


def test_reversed_duplicate_exclusions_are_valid():
    participants = ["user1", "user2", "user3", "user4"]
    exclusions = [("user1", "user2"), ("user2", "user1")]
    assert validate_feasibility(participants, exclusions).is_valid


def test_check_is_necessary_not_sufficient():
    # everyone keeps a candidate, yet A and B would both have to give to C
    result = validate_feasibility(["A", "B", "C"], [("A", "B")])
    assert result.is_valid


def test_split_into_cycles():
    assignment = {1: 2, 2: 3, 3: 1, 4: 5, 5: 6, 6: 4}
    cycles = split_into_cycles(assignment)
    assert sorted(len(cycle) for cycle in cycles) == [3, 3]
    assert sorted(member for cycle in cycles for member in cycle) == [1, 2, 3, 4, 5, 6]


def test_find_violations_accepts_a_valid_draw():
    assert find_violations(["A", "B", "C"], [], {"A": "B", "B": "C", "C": "A"}) == []


def test_find_violations_reports_broken_rules():
    assert find_violations(["A", "B", "C"], [], {"A": "A", "B": "C", "C": "B"})
    assert find_violations(["A", "B", "C", "D"], [], {"A": "B", "B": "A", "C": "D", "D": "C"})
    assert find_violations(["A", "B", "C"], [("C", "A")], {"A": "B", "B": "C", "C": "A"})
    assert find_violations(["A", "B", "C"], [], {"A": "B", "B": "C"})
    assert find_violations(["A", "B", "C"], [], {"A": "B", "B": "A", "C": "A"})
