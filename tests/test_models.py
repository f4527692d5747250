import pytest

from groupscore import db
from groupscore.models import Group, GroupMember
from groupscore.models.enums import (
    CANCELLED_STATES,
    FINISHED_STATES,
    TERMINAL_STATES,
    FixtureState,
    GroupStatus,
)
from groupscore.utils.scoring import InvalidRulesError, ScoringRules


def test_state_sets():
    assert FINISHED_STATES == {"FT", "AET", "FT_PEN"}
    assert CANCELLED_STATES == {"CAN", "INT"}
    assert FixtureState.POSTPONED.value not in TERMINAL_STATES
    assert FixtureState.LIVE.value not in TERMINAL_STATES


def test_fixture_flags(factory):
    finished = factory.fixture(state="AET", score=(1, 1))
    cancelled = factory.fixture(state="CAN")
    postponed = factory.fixture(state="PST")

    assert finished.is_finished and finished.is_terminal
    assert not cancelled.is_finished and cancelled.is_terminal
    assert not postponed.is_terminal
    assert (finished.home_score_90, finished.away_score_90) == (1, 1)


def test_group_activation_is_one_way(factory):
    alice = factory.user("alice")
    group = factory.group([alice], status=GroupStatus.DRAFT.value)

    assert group.activate() == (True, "Group activated")
    db.session.commit()
    assert group.is_active

    ok, _ = group.activate()
    assert not ok


def test_add_member_reactivates_previous_membership(factory):
    alice = factory.user("alice")
    bob = factory.user("bob")
    group = factory.group([alice, bob])
    membership = GroupMember.query.filter_by(group_id=group.id, user_id=bob.id).one()
    membership.deactivate()
    db.session.commit()
    assert group.get_member_count() == 1

    assert group.add_member(bob) == (True, "Membership reactivated")
    db.session.commit()
    assert group.get_member_count() == 2
    assert group.add_member(bob)[0] is False


def test_find_completed_group_ids(factory):
    alice = factory.user("alice")
    finished = factory.group([alice])
    factory.attach(finished, factory.fixture(state="FT", score=(1, 0)))
    factory.attach(finished, factory.fixture(state="CAN"))
    running = factory.group([alice])
    factory.attach(running, factory.fixture(state="FT", score=(1, 0)))
    factory.attach(running, factory.fixture(state="PST"))
    empty = factory.group([alice])

    ids = [finished.id, running.id, empty.id]
    assert Group.find_completed_group_ids(ids) == [finished.id]
    assert Group.find_completed_group_ids([]) == []


def test_rules_row_converts_to_scoring_rules(factory):
    alice = factory.user("alice")
    group = factory.group([alice], ko_round_mode="Penalties", outcome_points=4)

    rules = group.rules.to_scoring_rules()

    assert isinstance(rules, ScoringRules)
    assert rules.outcome_points == 4
    assert rules.ko_round_mode.value == "Penalties"


def test_rules_row_with_unknown_mode_raises(factory):
    alice = factory.user("alice")
    group = factory.group([alice], prediction_mode="Handicap")

    with pytest.raises(InvalidRulesError):
        group.rules.to_scoring_rules()
