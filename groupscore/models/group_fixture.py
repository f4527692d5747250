from datetime import datetime, timezone

from groupscore import db


class GroupFixture(db.Model):
    """Links a fixture to a group; predictions reference this row."""

    __tablename__ = "group_fixtures"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id"), nullable=False)
    fixture_id = db.Column(db.Integer, db.ForeignKey("fixtures.id"), nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    predictions = db.relationship(
        "GroupPrediction",
        backref="group_fixture",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.UniqueConstraint("group_id", "fixture_id", name="unique_group_fixture"),
        db.Index("idx_group_fixture_fixture", "fixture_id"),
    )

    def __repr__(self):
        return f"<GroupFixture group_id={self.group_id} fixture_id={self.fixture_id}>"
