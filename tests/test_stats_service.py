from datetime import datetime, timezone

from groupscore import cache, db
from groupscore.services.stats_service import (
    compute_head_to_head,
    get_head_to_head,
    get_user_stats,
)
from groupscore.utils.cache_utils import (
    CacheInvalidator,
    head_to_head_cache_key,
    user_stats_cache_key,
)


def _settle(prediction, points, exact=False, difference=False):
    prediction.points = points
    prediction.exact_hit = exact
    prediction.difference_hit = difference
    prediction.any_hit = points > 0
    prediction.settled_at = datetime.now(timezone.utc)
    db.session.commit()


def test_user_stats_aggregate_across_groups(factory):
    alice = factory.user("alice")
    first = factory.group([alice])
    second = factory.group([alice])
    fixture = factory.fixture(score=(2, 1))
    _settle(factory.predict(factory.attach(first, fixture), alice, "2:1"), 3, exact=True)
    _settle(factory.predict(factory.attach(second, fixture), alice, "0:1"), 0)
    factory.predict(factory.attach(first, factory.fixture(state="NS")), alice, "1:1")

    stats = get_user_stats(alice.id)

    assert stats["total_points"] == 3
    assert stats["prediction_count"] == 3
    assert stats["settled_count"] == 2
    assert stats["exact_hit_count"] == 1
    assert stats["group_count"] == 2
    assert stats["accuracy"] == 50.0


def test_user_stats_are_cached_until_invalidated(factory):
    alice = factory.user("alice")
    group = factory.group([alice])
    fixture = factory.fixture(score=(1, 0))
    prediction = factory.predict(factory.attach(group, fixture), alice, "1:0")

    assert get_user_stats(alice.id)["total_points"] == 0
    _settle(prediction, 3, exact=True)
    assert get_user_stats(alice.id)["total_points"] == 0

    CacheInvalidator().invalidate_user_stats([alice.id])
    assert cache.get(user_stats_cache_key(alice.id)) is None
    assert get_user_stats(alice.id)["total_points"] == 3


def test_head_to_head_compares_shared_fixtures(factory):
    alice = factory.user("alice")
    bob = factory.user("bob")
    group = factory.group([alice, bob])
    shared_win = factory.attach(group, factory.fixture(score=(2, 1)))
    shared_draw = factory.attach(group, factory.fixture(score=(0, 0)))
    alone = factory.attach(group, factory.fixture(score=(1, 1)))

    _settle(factory.predict(shared_win, alice, "2:1"), 3, exact=True)
    _settle(factory.predict(shared_win, bob, "1:0"), 2, difference=True)
    _settle(factory.predict(shared_draw, alice, "1:1"), 2, difference=True)
    _settle(factory.predict(shared_draw, bob, "2:2"), 2, difference=True)
    _settle(factory.predict(alone, alice, "1:1"), 3, exact=True)

    record = compute_head_to_head(alice.id, bob.id)

    assert record["shared_fixtures"] == 2
    assert (record["wins"], record["losses"], record["draws"]) == (1, 0, 1)
    assert (record["points"], record["opponent_points"]) == (5, 4)


def test_head_to_head_cache_holds_records_per_opponent(factory):
    alice = factory.user("alice")
    bob = factory.user("bob")
    carol = factory.user("carol")
    factory.group([alice, bob, carol])

    get_head_to_head(alice.id, bob.id)
    get_head_to_head(alice.id, carol.id)

    CacheInvalidator().invalidate_head_to_head([alice.id])
    assert get_head_to_head(alice.id, bob.id)["shared_fixtures"] == 0


def test_head_to_head_refresh_keeps_other_opponents_cached(factory):
    alice = factory.user("alice")
    bob = factory.user("bob")
    carol = factory.user("carol")
    group = factory.group([alice, bob, carol])
    fixture = factory.attach(group, factory.fixture(score=(2, 1)))

    assert get_head_to_head(alice.id, bob.id)["shared_fixtures"] == 0
    carol_record = get_head_to_head(alice.id, carol.id)

    _settle(factory.predict(fixture, alice, "2:1"), 3, exact=True)
    _settle(factory.predict(fixture, bob, "0:0"), 0)

    refreshed = get_head_to_head(alice.id, bob.id, use_cache=False)

    assert refreshed["shared_fixtures"] == 1
    assert refreshed["wins"] == 1
    records = cache.get(head_to_head_cache_key(alice.id))
    assert records[carol.id] == carol_record
    assert records[bob.id] == refreshed
