"""
Group ranking: aggregated points and win-tier counts per member.

Every active member is listed, including members without predictions.
Ordering is points, then exact hits, then goal-difference hits (all
descending), then username and user id for a fully deterministic order.
Ranks follow standard competition ranking ("1, 1, 3").
"""

import logging
from dataclasses import asdict, dataclass
from typing import List, Optional

from flask import current_app
from sqlalchemy import case, func

from groupscore import cache, db
from groupscore.models import GroupMember, GroupPrediction, User
from groupscore.utils.cache_utils import ranking_cache_key

logger = logging.getLogger(__name__)


@dataclass
class RankingEntry:
    user_id: int
    username: Optional[str]
    total_points: int = 0
    prediction_count: int = 0
    exact_hit_count: int = 0
    difference_hit_count: int = 0
    any_hit_count: int = 0
    rank: int = 0

    def tie_key(self):
        return (self.total_points, self.exact_hit_count, self.difference_hit_count)

    def to_dict(self):
        return asdict(self)


def _sort_key(entry):
    return (
        -entry.total_points,
        -entry.exact_hit_count,
        -entry.difference_hit_count,
        entry.username or "",
        entry.user_id,
    )


def assign_ranks(entries):
    """Sort entries in place and assign standard competition ranks."""
    entries.sort(key=_sort_key)
    previous = None
    for position, entry in enumerate(entries, start=1):
        if previous is not None and entry.tie_key() == previous.tie_key():
            entry.rank = previous.rank
        else:
            entry.rank = position
        previous = entry
    return entries


def compute_group_ranking(group_id) -> List[RankingEntry]:
    """Recompute the ranking of a group from current predictions, bypassing any cache."""
    # Unsettled predictions count towards prediction_count but add no points
    settled_points = case(
        (GroupPrediction.settled_at.isnot(None), GroupPrediction.points), else_=0
    )
    rows = (
        db.session.query(
            GroupPrediction.user_id,
            func.coalesce(func.sum(settled_points), 0).label("total_points"),
            func.count(GroupPrediction.id).label("prediction_count"),
            func.count(case((GroupPrediction.exact_hit.is_(True), 1))).label("exact"),
            func.count(case((GroupPrediction.difference_hit.is_(True), 1))).label(
                "difference"
            ),
            func.count(case((GroupPrediction.any_hit.is_(True), 1))).label("any_hits"),
        )
        .filter(GroupPrediction.group_id == group_id)
        .group_by(GroupPrediction.user_id)
        .all()
    )
    stats_by_user = {row.user_id: row for row in rows}

    members = (
        db.session.query(GroupMember.user_id, User.username)
        .join(User, User.id == GroupMember.user_id)
        .filter(GroupMember.group_id == group_id, GroupMember.is_active.is_(True))
        .all()
    )

    entries = []
    for member in members:
        entry = RankingEntry(user_id=member.user_id, username=member.username)
        stats = stats_by_user.get(member.user_id)
        if stats is not None:
            entry.total_points = int(stats.total_points or 0)
            entry.prediction_count = int(stats.prediction_count or 0)
            entry.exact_hit_count = int(stats.exact or 0)
            entry.difference_hit_count = int(stats.difference or 0)
            entry.any_hit_count = int(stats.any_hits or 0)
        entries.append(entry)

    return assign_ranks(entries)


def get_group_ranking(group_id, use_cache=True) -> List[RankingEntry]:
    """
    Read API for group standings.

    Args:
        group_id: Group ID
        use_cache: When False, always recompute (and refresh the cached copy)

    Returns:
        Ordered list of RankingEntry
    """
    key = ranking_cache_key(group_id)
    if use_cache:
        cached = cache.get(key)
        if cached is not None:
            logger.debug(f"Ranking cache hit for group {group_id}")
            return cached

    entries = compute_group_ranking(group_id)
    try:
        cache.set(key, entries, timeout=current_app.config.get("RANKING_CACHE_TTL", 30))
    except Exception as e:
        logger.warning(f"Failed to cache ranking for group {group_id}: {e}")
    return entries


def rank_map(entries):
    """user_id -> rank, for diffing two rankings"""
    return {entry.user_id: entry.rank for entry in entries}
