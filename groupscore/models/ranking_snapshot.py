from datetime import datetime, timezone
import logging

from groupscore import db

logger = logging.getLogger(__name__)


class RankingSnapshot(db.Model):
    """Standings of a group as they stood right after a settlement run.

    Historical record only; live rankings are always recomputed from
    predictions.
    """
    __tablename__ = "ranking_snapshots"

    id = db.Column(db.Integer, primary_key=True)

    group_id = db.Column(db.Integer, db.ForeignKey("groups.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    rank = db.Column(db.Integer, nullable=False)
    total_points = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.Index("idx_ranking_snapshot_group", "group_id", "created_at"),
    )

    def __repr__(self):
        return f'<RankingSnapshot group={self.group_id} user={self.user_id} rank={self.rank}>'

    @staticmethod
    def create_snapshot(group_id, entries, taken_at=None):
        """Store one row per ranking entry and commit.

        Args:
            group_id: Group ID
            entries: RankingEntry list as returned by the ranking service
            taken_at: Optional timestamp shared by all rows

        Returns:
            List of created RankingSnapshot objects
        """
        taken_at = taken_at or datetime.now(timezone.utc)
        snapshots = [
            RankingSnapshot(
                group_id=group_id,
                user_id=entry.user_id,
                rank=entry.rank,
                total_points=entry.total_points,
                created_at=taken_at,
            )
            for entry in entries
        ]
        if not snapshots:
            return []

        db.session.add_all(snapshots)
        db.session.commit()
        logger.debug(f"Stored ranking snapshot for group {group_id} ({len(snapshots)} rows)")
        return snapshots
