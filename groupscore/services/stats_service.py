"""
Per-user statistics and head-to-head comparisons.

Both are cached per user with a short TTL and invalidated by settlement.
"""

import logging

from flask import current_app
from sqlalchemy import case, func

from groupscore import cache, db
from groupscore.models import GroupPrediction
from groupscore.utils.cache_utils import head_to_head_cache_key, user_stats_cache_key

logger = logging.getLogger(__name__)


def _cache_timeout():
    return current_app.config.get("USER_STATS_CACHE_TTL", 120)


def compute_user_stats(user_id):
    """Aggregate a user's predictions across all groups"""
    row = (
        db.session.query(
            func.count(GroupPrediction.id).label("predictions"),
            func.count(GroupPrediction.settled_at).label("settled"),
            func.coalesce(
                func.sum(
                    case(
                        (GroupPrediction.settled_at.isnot(None), GroupPrediction.points),
                        else_=0,
                    )
                ),
                0,
            ).label("points"),
            func.count(case((GroupPrediction.exact_hit.is_(True), 1))).label("exact"),
            func.count(case((GroupPrediction.difference_hit.is_(True), 1))).label(
                "difference"
            ),
            func.count(case((GroupPrediction.any_hit.is_(True), 1))).label("any_hits"),
            func.count(func.distinct(GroupPrediction.group_id)).label("groups"),
        )
        .filter(GroupPrediction.user_id == user_id)
        .one()
    )

    settled = int(row.settled or 0)
    any_hits = int(row.any_hits or 0)
    return {
        "user_id": user_id,
        "total_points": int(row.points or 0),
        "prediction_count": int(row.predictions or 0),
        "settled_count": settled,
        "exact_hit_count": int(row.exact or 0),
        "difference_hit_count": int(row.difference or 0),
        "any_hit_count": any_hits,
        "group_count": int(row.groups or 0),
        "accuracy": round(any_hits / settled * 100, 1) if settled else 0.0,
    }


def get_user_stats(user_id, use_cache=True):
    key = user_stats_cache_key(user_id)
    if use_cache:
        cached = cache.get(key)
        if cached is not None:
            return cached

    stats = compute_user_stats(user_id)
    cache.set(key, stats, timeout=_cache_timeout())
    return stats


def compute_head_to_head(user_id, opponent_id):
    """Compare two users on every settled group fixture both predicted.

    Returns:
        dict with wins/losses/draws from ``user_id``'s point of view and
        both users' points over the shared fixtures
    """
    mine = {
        row.group_fixture_id: row.points
        for row in GroupPrediction.query.filter(
            GroupPrediction.user_id == user_id, GroupPrediction.settled_at.isnot(None)
        )
    }
    theirs = {}
    if mine:
        theirs = {
            row.group_fixture_id: row.points
            for row in GroupPrediction.query.filter(
                GroupPrediction.user_id == opponent_id,
                GroupPrediction.settled_at.isnot(None),
                GroupPrediction.group_fixture_id.in_(list(mine)),
            )
        }

    result = {
        "user_id": user_id,
        "opponent_id": opponent_id,
        "shared_fixtures": len(theirs),
        "wins": 0,
        "losses": 0,
        "draws": 0,
        "points": 0,
        "opponent_points": 0,
    }
    for group_fixture_id, their_points in theirs.items():
        my_points = mine[group_fixture_id]
        result["points"] += my_points
        result["opponent_points"] += their_points
        if my_points > their_points:
            result["wins"] += 1
        elif my_points < their_points:
            result["losses"] += 1
        else:
            result["draws"] += 1
    return result


def get_head_to_head(user_id, opponent_id, use_cache=True):
    """Head-to-head record, cached per user as {opponent_id: record}"""
    key = head_to_head_cache_key(user_id)
    records = cache.get(key) or {}
    if use_cache and opponent_id in records:
        return records[opponent_id]

    record = compute_head_to_head(user_id, opponent_id)
    records[opponent_id] = record
    cache.set(key, records, timeout=_cache_timeout())
    return record
