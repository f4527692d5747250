from datetime import datetime, timezone

from groupscore import db

from .enums import FINISHED_STATES, TERMINAL_STATES, FixtureState


class Fixture(db.Model):
    """A single match as supplied by the ingestion pipeline.

    Read-only from the settlement engine's point of view. The primary pair
    (``home_score_90``/``away_score_90``) is the regulation-time score; the
    extra-time pair and penalty counts are only present when the match went
    that far. ``result`` is the provider's free-form result string.
    """

    __tablename__ = "fixtures"

    id = db.Column(db.Integer, primary_key=True)
    external_id = db.Column(db.String(50), unique=True, index=True)
    name = db.Column(db.String(200))

    start_time = db.Column(db.DateTime)
    state = db.Column(
        db.String(10), nullable=False, default=FixtureState.NOT_STARTED.value
    )

    # Regulation time
    home_score_90 = db.Column(db.Integer)
    away_score_90 = db.Column(db.Integer)

    # Extra time (only when the match went to overtime)
    home_score_et = db.Column(db.Integer)
    away_score_et = db.Column(db.Integer)

    # Shoot-out goals (only when overtime ended level)
    pen_home = db.Column(db.Integer)
    pen_away = db.Column(db.Integer)

    result = db.Column(db.String(20))

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    group_fixtures = db.relationship(
        "GroupFixture", backref="fixture", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_fixture_state", "state"),
        db.Index("idx_fixture_start_time", "start_time"),
    )

    def __repr__(self):
        return f"<Fixture {self.id} {self.name or ''} [{self.state}]>"

    @property
    def is_finished(self):
        return self.state in FINISHED_STATES

    @property
    def is_terminal(self):
        return self.state in TERMINAL_STATES
