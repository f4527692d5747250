from datetime import datetime, timezone

from groupscore import db

from .enums import TERMINAL_STATES, GroupStatus


class Group(db.Model):
    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    # draft -> active -> ended, one way
    status = db.Column(db.String(10), nullable=False, default=GroupStatus.DRAFT.value)

    creator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    members = db.relationship(
        "GroupMember", backref="group", lazy="dynamic", cascade="all, delete-orphan"
    )
    group_fixtures = db.relationship(
        "GroupFixture", backref="group", lazy="dynamic", cascade="all, delete-orphan"
    )
    predictions = db.relationship(
        "GroupPrediction", backref="group", lazy="dynamic", cascade="all, delete-orphan"
    )
    rules = db.relationship(
        "GroupRules",
        backref="group",
        uselist=False,
        cascade="all, delete-orphan",
    )
    creator = db.relationship("User", foreign_keys=[creator_id])

    __table_args__ = (
        db.Index("idx_group_creator", "creator_id"),
        db.Index("idx_group_status", "status"),
    )

    def __repr__(self):
        return f"<Group {self.name} [{self.status}]>"

    @property
    def is_active(self):
        return self.status == GroupStatus.ACTIVE.value

    @property
    def is_ended(self):
        return self.status == GroupStatus.ENDED.value

    def get_member_count(self):
        """Get count of active members"""
        return self.members.filter_by(is_active=True).count()

    def add_member(self, user):
        """Add a user to the group, reactivating a previous membership"""
        from .group_member import GroupMember

        existing = self.members.filter_by(user_id=user.id).first()
        if existing:
            if existing.is_active:
                return False, "User is already a member"
            existing.reactivate()
            return True, "Membership reactivated"

        membership = GroupMember(user_id=user.id, group_id=self.id)
        db.session.add(membership)
        return True, "User added successfully"

    def activate(self):
        """Open a draft group for predictions"""
        if self.status != GroupStatus.DRAFT.value:
            return False, f"Group is {self.status}"
        self.status = GroupStatus.ACTIVE.value
        return True, "Group activated"

    @staticmethod
    def find_completed_group_ids(group_ids):
        """Return the ids among ``group_ids`` whose every fixture is terminal.

        Groups with no fixture memberships are never considered complete.
        The check always reads current fixture states; callers must not cache it.
        """
        from .fixture import Fixture
        from .group_fixture import GroupFixture

        group_ids = list(group_ids)
        if not group_ids:
            return []

        with_fixtures = {
            row.group_id
            for row in db.session.query(GroupFixture.group_id)
            .filter(GroupFixture.group_id.in_(group_ids))
            .distinct()
        }
        with_pending = {
            row.group_id
            for row in db.session.query(GroupFixture.group_id)
            .join(Fixture, Fixture.id == GroupFixture.fixture_id)
            .filter(
                GroupFixture.group_id.in_(group_ids),
                Fixture.state.notin_(sorted(TERMINAL_STATES)),
            )
            .distinct()
        }
        return sorted(with_fixtures - with_pending)
