"""
Cache utilities for group rankings and per-user statistics
Provides cache key builders and the invalidation hooks called after settlement
"""

import logging

from flask import current_app

from groupscore import cache

logger = logging.getLogger(__name__)


def ranking_cache_key(group_id):
    return f"ranking_group_{group_id}"


def user_stats_cache_key(user_id):
    return f"user_stats_{user_id}"


def head_to_head_cache_key(user_id):
    return f"h2h_user_{user_id}"


def _delete_keys(keys, label):
    """Delete each key on its own so one failure does not stop the rest.

    Returns:
        Number of keys whose deletion raised
    """
    failures = 0
    for key in keys:
        try:
            cache.delete(key)
        except Exception as e:
            failures += 1
            logger.warning(f"Failed to invalidate {label} cache key {key}: {e}")
    if keys:
        logger.debug(f"Invalidated {len(keys) - failures}/{len(keys)} {label} cache keys")
    return failures


class CacheInvalidator:
    """Invalidation hooks for caches owned outside the settlement engine.

    Every method is fire-and-forget: errors are logged and swallowed.
    """

    def invalidate_ranking(self, group_ids):
        return _delete_keys([ranking_cache_key(g) for g in group_ids], "ranking")

    def invalidate_user_stats(self, user_ids):
        return _delete_keys([user_stats_cache_key(u) for u in user_ids], "user stats")

    def invalidate_head_to_head(self, user_ids):
        return _delete_keys(
            [head_to_head_cache_key(u) for u in user_ids], "head-to-head"
        )


cache_invalidator = CacheInvalidator()


class CacheManager:
    """Cache management utilities"""

    @staticmethod
    def get_cache_stats():
        """Get cache statistics"""
        return {
            "type": current_app.config.get("CACHE_TYPE", "Unknown"),
            "timeout": current_app.config.get("CACHE_DEFAULT_TIMEOUT", 300),
            "ranking_ttl": current_app.config.get("RANKING_CACHE_TTL", 30),
        }
