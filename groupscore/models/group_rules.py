from datetime import datetime, timezone

from groupscore import db

from .enums import KORoundMode, PredictionMode


class GroupRules(db.Model):
    """Scoring configuration, exactly one row per group."""

    __tablename__ = "group_rules"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(
        db.Integer, db.ForeignKey("groups.id"), nullable=False, unique=True
    )

    prediction_mode = db.Column(
        db.String(20), nullable=False, default=PredictionMode.CORRECT_SCORE.value
    )
    on_the_nose_points = db.Column(db.Integer, nullable=False, default=3)
    correct_difference_points = db.Column(db.Integer, nullable=False, default=2)
    outcome_points = db.Column(db.Integer, nullable=False, default=1)
    ko_round_mode = db.Column(
        db.String(20), nullable=False, default=KORoundMode.FULL_TIME.value
    )

    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<GroupRules group_id={self.group_id} {self.prediction_mode}/{self.ko_round_mode}>"

    def to_scoring_rules(self):
        """Build the typed rules value used by the scoring function.

        Raises InvalidRulesError for an unknown prediction mode.
        """
        from groupscore.utils.scoring import ScoringRules

        return ScoringRules.from_values(
            prediction_mode=self.prediction_mode,
            on_the_nose_points=self.on_the_nose_points,
            correct_difference_points=self.correct_difference_points,
            outcome_points=self.outcome_points,
            ko_round_mode=self.ko_round_mode,
        )
