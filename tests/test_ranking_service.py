from datetime import datetime, timezone

from groupscore import cache, db
from groupscore.models import GroupMember
from groupscore.services.ranking_service import (
    RankingEntry,
    assign_ranks,
    compute_group_ranking,
    get_group_ranking,
    rank_map,
)
from groupscore.utils.cache_utils import ranking_cache_key


def _settle(prediction, points, exact=False, difference=False):
    prediction.points = points
    prediction.exact_hit = exact
    prediction.difference_hit = difference
    prediction.any_hit = points > 0
    prediction.settled_at = datetime.now(timezone.utc)
    db.session.commit()


def test_assign_ranks_uses_standard_competition_ranking():
    entries = [
        RankingEntry(user_id=3, username="charlie", total_points=5, exact_hit_count=1),
        RankingEntry(user_id=2, username="bob", total_points=4, exact_hit_count=1),
        RankingEntry(user_id=1, username="alice", total_points=5, exact_hit_count=1),
    ]
    ranked = assign_ranks(entries)
    assert [(e.username, e.rank) for e in ranked] == [
        ("alice", 1),
        ("charlie", 1),
        ("bob", 3),
    ]


def test_tie_breaks_on_exact_then_difference_hits():
    entries = [
        RankingEntry(user_id=1, username="a", total_points=4, exact_hit_count=0, difference_hit_count=2),
        RankingEntry(user_id=2, username="b", total_points=4, exact_hit_count=1, difference_hit_count=0),
        RankingEntry(user_id=3, username="c", total_points=4, exact_hit_count=0, difference_hit_count=1),
    ]
    ranked = assign_ranks(entries)
    assert [(e.username, e.rank) for e in ranked] == [("b", 1), ("a", 2), ("c", 3)]


def test_user_id_breaks_ordering_without_usernames():
    entries = [
        RankingEntry(user_id=9, username=None),
        RankingEntry(user_id=4, username=None),
    ]
    ranked = assign_ranks(entries)
    assert [e.user_id for e in ranked] == [4, 9]
    assert [e.rank for e in ranked] == [1, 1]


def test_compute_group_ranking_includes_members_without_predictions(factory):
    alice = factory.user("alice")
    bob = factory.user("bob")
    charlie = factory.user("charlie")
    dave = factory.user("dave")
    group = factory.group([alice, bob, charlie, dave])
    gf = factory.attach(group, factory.fixture(score=(2, 1)))

    _settle(factory.predict(gf, alice, "2:1"), 3, exact=True)
    _settle(factory.predict(gf, charlie, "2:1"), 3, exact=True)
    _settle(factory.predict(gf, bob, "1:0"), 2, difference=True)

    ranking = compute_group_ranking(group.id)

    assert [(e.username, e.rank, e.total_points) for e in ranking] == [
        ("alice", 1, 3),
        ("charlie", 1, 3),
        ("bob", 3, 2),
        ("dave", 4, 0),
    ]
    assert ranking[3].prediction_count == 0


def test_unsettled_predictions_add_no_points(factory):
    alice = factory.user("alice")
    group = factory.group([alice])
    gf = factory.attach(group, factory.fixture(score=(2, 1)))
    prediction = factory.predict(gf, alice, "2:1")
    prediction.points = 3  # not settled yet
    db.session.commit()

    entry = compute_group_ranking(group.id)[0]
    assert entry.total_points == 0
    assert entry.prediction_count == 1


def test_inactive_members_are_excluded(factory):
    alice = factory.user("alice")
    bob = factory.user("bob")
    group = factory.group([alice, bob])
    GroupMember.query.filter_by(group_id=group.id, user_id=bob.id).one().deactivate()
    db.session.commit()

    assert [e.username for e in compute_group_ranking(group.id)] == ["alice"]


def test_get_group_ranking_uses_cache_until_bypassed(factory):
    alice = factory.user("alice")
    bob = factory.user("bob")
    group = factory.group([alice])

    first = get_group_ranking(group.id)
    assert cache.get(ranking_cache_key(group.id)) is not None

    group.add_member(bob)
    db.session.commit()

    assert len(get_group_ranking(group.id)) == len(first) == 1
    assert len(get_group_ranking(group.id, use_cache=False)) == 2
    # Bypassing the cache refreshes the cached copy
    assert len(get_group_ranking(group.id)) == 2


def test_rank_map():
    entries = [RankingEntry(user_id=1, username="a", rank=1), RankingEntry(user_id=2, username="b", rank=2)]
    assert rank_map(entries) == {1: 1, 2: 2}
