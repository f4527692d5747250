"""
Settlement of predictions for finished fixtures.

A run loads the finished fixtures it was given, scores every unsettled
prediction attached to them, writes all awards in one transaction and then
closes groups whose fixtures are all terminal. Ranking events and cache
invalidation follow the commit and are best-effort.

Runs are safe to repeat: a prediction with ``settled_at`` set is never
scored again, so overlapping or retried runs converge.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import update

from groupscore import db
from groupscore.models import (
    Fixture,
    Group,
    GroupFixture,
    GroupPrediction,
    GroupRules,
    RankingSnapshot,
)
from groupscore.models.enums import FINISHED_STATES, GroupStatus
from groupscore.services.ranking_service import compute_group_ranking, rank_map
from groupscore.socketio_handlers import group_notifier
from groupscore.utils.cache_utils import cache_invalidator
from groupscore.utils.logging_config import ContextualLogger
from groupscore.utils.performance import timer
from groupscore.utils.scoring import (
    InvalidRulesError,
    calculate_score,
    fixture_result_from_model,
    parse_scores,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementSettings:
    rank_change_top_n: int = 3
    notify_leader_change: bool = True
    persist_ranking_snapshots: bool = True

    @classmethod
    def from_config(cls, config):
        return cls(
            rank_change_top_n=int(config.get("RANK_CHANGE_TOP_N", 3)),
            notify_leader_change=bool(config.get("NOTIFY_LEADER_CHANGE", True)),
            persist_ranking_snapshots=bool(
                config.get("PERSIST_RANKING_SNAPSHOTS", True)
            ),
        )


@dataclass
class SettlementResult:
    settled: int = 0
    skipped: int = 0
    groups_ended: int = 0

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class PendingUpdate:
    prediction_id: int
    group_id: int
    user_id: int
    points: int
    exact_hit: bool
    difference_hit: bool
    any_hit: bool


def transition_completed_groups(group_ids):
    """
    Move active groups whose every fixture is terminal to "ended".

    Always re-reads fixture states, so it is safe to call after any run.

    Returns:
        Number of groups transitioned
    """
    completed_ids = Group.find_completed_group_ids(group_ids)
    if not completed_ids:
        return 0

    to_end = [
        g.id
        for g in Group.query.filter(
            Group.id.in_(completed_ids), Group.status == GroupStatus.ACTIVE.value
        )
    ]
    if not to_end:
        return 0

    try:
        outcome = db.session.execute(
            update(Group)
            .where(Group.id.in_(to_end), Group.status == GroupStatus.ACTIVE.value)
            .values(status=GroupStatus.ENDED.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.error(f"Failed to end groups {to_end}", exc_info=True)
        raise

    for group_id in to_end:
        logger.info(f"Group {group_id} transitioned to ended")
    return outcome.rowcount


class SettlementService:
    """
    Turns finished fixtures into settled predictions.

    Collaborators are injected so callers and tests can substitute them:
        settings: SettlementSettings
        notifier: object with emit_rank_change / emit_leader_change
        invalidator: object with invalidate_ranking / invalidate_user_stats /
            invalidate_head_to_head
        ranking: callable group_id -> ranking entries, must not be cached
    """

    def __init__(
        self, settings=None, notifier=None, invalidator=None, ranking=None, clock=None
    ):
        self.settings = settings or SettlementSettings()
        self.notifier = notifier or group_notifier
        self.invalidator = invalidator or cache_invalidator
        self.ranking = ranking or compute_group_ranking
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @timer
    def settle(self, fixture_ids):
        """
        Settle predictions for the given fixtures.

        Args:
            fixture_ids: Iterable of fixture IDs that just became terminal

        Returns:
            SettlementResult with settled, skipped and groups_ended counts
        """
        fixture_ids = sorted({int(f) for f in fixture_ids or ()})
        if not fixture_ids:
            logger.debug("No fixture IDs provided")
            return SettlementResult()

        log = ContextualLogger(__name__, {"fixtures": len(fixture_ids)})
        log.info(f"Starting settlement for fixtures {fixture_ids}")

        fixtures = Fixture.query.filter(
            Fixture.id.in_(fixture_ids), Fixture.state.in_(sorted(FINISHED_STATES))
        ).all()
        if not fixtures:
            log.debug("No finished fixtures found")
            return SettlementResult()
        fixture_map = {f.id: f for f in fixtures}

        group_fixtures = GroupFixture.query.filter(
            GroupFixture.fixture_id.in_(list(fixture_map))
        ).all()
        if not group_fixtures:
            log.debug("No group fixtures found")
            return SettlementResult()

        fixture_by_group_fixture = {gf.id: gf.fixture_id for gf in group_fixtures}
        group_ids = sorted({gf.group_id for gf in group_fixtures})

        rules_map = self._load_rules(group_ids)

        predictions = GroupPrediction.query.filter(
            GroupPrediction.group_fixture_id.in_(list(fixture_by_group_fixture)),
            GroupPrediction.settled_at.is_(None),
        ).all()
        log.info(f"Loaded {len(predictions)} unsettled predictions")

        updates, skipped = self._score_predictions(
            predictions, fixture_by_group_fixture, fixture_map, rules_map
        )

        if not updates:
            groups_ended = transition_completed_groups(group_ids)
            log.info(f"No predictions to settle (skipped={skipped}, groups_ended={groups_ended})")
            return SettlementResult(settled=0, skipped=skipped, groups_ended=groups_ended)

        touched_group_ids = sorted({u.group_id for u in updates})
        rankings_before = self._snapshot_rankings(touched_group_ids)

        settled = self._apply_updates(updates)
        groups_ended = transition_completed_groups(group_ids)

        user_ids = sorted({u.user_id for u in updates})
        self._invalidate_caches(touched_group_ids, user_ids)
        self._publish_ranking_changes(touched_group_ids, rankings_before)

        log.info(
            f"Settlement completed: settled={settled} skipped={skipped} "
            f"groups_ended={groups_ended}"
        )
        return SettlementResult(settled=settled, skipped=skipped, groups_ended=groups_ended)

    def _load_rules(self, group_ids):
        rules_map = {}
        for row in GroupRules.query.filter(GroupRules.group_id.in_(group_ids)):
            try:
                rules_map[row.group_id] = row.to_scoring_rules()
            except InvalidRulesError as e:
                logger.warning(f"Invalid rules for group {row.group_id}: {e}")
        missing = set(group_ids) - set(rules_map)
        if missing:
            logger.warning(f"No usable scoring rules for groups {sorted(missing)}")
        return rules_map

    def _score_predictions(self, predictions, fixture_by_group_fixture, fixture_map, rules_map):
        updates = []
        skipped = 0
        results_by_fixture = {}

        for pred in predictions:
            fixture_id = fixture_by_group_fixture.get(pred.group_fixture_id)
            fixture = fixture_map.get(fixture_id)
            if fixture is None:
                logger.warning(f"Missing fixture for prediction {pred.id}")
                skipped += 1
                continue

            rules = rules_map.get(pred.group_id)
            if rules is None:
                logger.warning(
                    f"Missing rules for prediction {pred.id} (group {pred.group_id})"
                )
                skipped += 1
                continue

            if fixture.id not in results_by_fixture:
                results_by_fixture[fixture.id] = fixture_result_from_model(fixture)
            result = results_by_fixture[fixture.id]
            if result is None:
                logger.warning(
                    f"Fixture {fixture.id} has null scores, skipping prediction {pred.id}"
                )
                skipped += 1
                continue

            if parse_scores(pred.prediction) is None:
                logger.warning(
                    f"Malformed prediction {pred.prediction!r} ({pred.id}), settling with zero"
                )

            score = calculate_score(pred.prediction, result, rules)
            updates.append(
                PendingUpdate(
                    prediction_id=pred.id,
                    group_id=pred.group_id,
                    user_id=pred.user_id,
                    points=score.points,
                    exact_hit=score.exact_hit,
                    difference_hit=score.difference_hit,
                    any_hit=score.any_hit,
                )
            )

        return updates, skipped

    def _snapshot_rankings(self, group_ids):
        """user_id -> rank per group, read before any write"""
        snapshots = {}
        for group_id in group_ids:
            try:
                snapshots[group_id] = rank_map(self.ranking(group_id))
            except Exception as e:
                db.session.rollback()
                logger.warning(
                    f"Failed to snapshot ranking before settlement for group {group_id}: {e}"
                )
        return snapshots

    def _apply_updates(self, updates):
        """Write every award in one transaction; all or nothing."""
        now = self.clock()
        settled = 0
        try:
            for item in updates:
                outcome = db.session.execute(
                    update(GroupPrediction)
                    .where(
                        GroupPrediction.id == item.prediction_id,
                        GroupPrediction.settled_at.is_(None),
                    )
                    .values(
                        points=item.points,
                        exact_hit=item.exact_hit,
                        difference_hit=item.difference_hit,
                        any_hit=item.any_hit,
                        settled_at=now,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
                settled += outcome.rowcount
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.error(
                f"Failed to settle predictions ({len(updates)} updates)", exc_info=True
            )
            raise

        if settled < len(updates):
            logger.info(
                f"{len(updates) - settled} predictions were settled concurrently by another run"
            )
        return settled

    def _invalidate_caches(self, group_ids, user_ids):
        calls = (
            ("ranking", self.invalidator.invalidate_ranking, group_ids),
            ("user stats", self.invalidator.invalidate_user_stats, user_ids),
            ("head-to-head", self.invalidator.invalidate_head_to_head, user_ids),
        )
        for label, invalidate, ids in calls:
            try:
                invalidate(ids)
            except Exception as e:
                logger.warning(f"Failed to invalidate {label} cache: {e}")

    def _publish_ranking_changes(self, group_ids, rankings_before):
        for group_id in group_ids:
            try:
                after = self.ranking(group_id)
            except Exception as e:
                db.session.rollback()
                logger.warning(
                    f"Failed to fetch ranking after settlement for group {group_id}: {e}"
                )
                continue

            before = rankings_before.get(group_id)
            if before is not None:
                self._emit_rank_changes(group_id, before, after)

            if self.settings.persist_ranking_snapshots:
                try:
                    RankingSnapshot.create_snapshot(group_id, after, taken_at=self.clock())
                except Exception as e:
                    db.session.rollback()
                    logger.warning(f"Failed to store ranking snapshot for group {group_id}: {e}")

    def _emit_rank_changes(self, group_id, before, after):
        top_n = self.settings.rank_change_top_n

        for entry in after:
            previous = before.get(entry.user_id)
            if previous is None or entry.rank >= previous or entry.rank > top_n:
                continue
            try:
                self.notifier.emit_rank_change(
                    group_id, entry.user_id, previous, entry.rank, username=entry.username
                )
            except Exception as e:
                logger.warning(
                    f"Failed to emit rank change for user {entry.user_id} in group {group_id}: {e}"
                )

        if not self.settings.notify_leader_change:
            return

        leaders = [entry for entry in after if entry.rank == 1]
        previous_leaders = {user_id for user_id, rank in before.items() if rank == 1}
        if len(leaders) == 1 and leaders[0].user_id not in previous_leaders:
            try:
                self.notifier.emit_leader_change(
                    group_id, leaders[0].user_id, username=leaders[0].username
                )
            except Exception as e:
                logger.warning(f"Failed to emit leader change for group {group_id}: {e}")


def settle_predictions_for_fixtures(fixture_ids, settings=None):
    """Settle with collaborators and settings taken from the current app"""
    service = SettlementService(
        settings=settings or SettlementSettings.from_config(current_app.config)
    )
    return service.settle(fixture_ids)


def find_pending_fixture_ids(since=None):
    """Finished fixtures that still have unsettled predictions.

    Args:
        since: Optional datetime; only fixtures starting at or after it
    """
    query = (
        db.session.query(Fixture.id)
        .join(GroupFixture, GroupFixture.fixture_id == Fixture.id)
        .join(GroupPrediction, GroupPrediction.group_fixture_id == GroupFixture.id)
        .filter(
            Fixture.state.in_(sorted(FINISHED_STATES)), GroupPrediction.settled_at.is_(None)
        )
    )
    if since is not None:
        query = query.filter(Fixture.start_time >= since)
    return sorted({row.id for row in query.distinct()})


def close_completed_groups():
    """Run the termination check over every active group."""
    active_ids = [
        g.id for g in Group.query.filter(Group.status == GroupStatus.ACTIVE.value)
    ]
    return transition_completed_groups(active_ids)


def lookback_start(hours):
    return datetime.now(timezone.utc) - timedelta(hours=hours)
