import pytest

from groupscore import cache, create_app, db
from groupscore.models import (
    Fixture,
    Group,
    GroupFixture,
    GroupMember,
    GroupPrediction,
    GroupRules,
    User,
)
from groupscore.models.enums import FixtureState, GroupStatus


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        cache.clear()
        yield app
        db.session.remove()
        db.drop_all()


class Factory:
    """Builds committed rows for tests."""

    def __init__(self):
        self._users = 0

    def user(self, username=None):
        self._users += 1
        user = User(username=username or f"user{self._users}")
        db.session.add(user)
        db.session.commit()
        return user

    def fixture(
        self,
        state=FixtureState.FULL_TIME.value,
        score=None,
        et=None,
        pens=None,
        result=None,
        start_time=None,
    ):
        fixture = Fixture(state=state, result=result, start_time=start_time)
        if score is not None:
            fixture.home_score_90, fixture.away_score_90 = score
        if et is not None:
            fixture.home_score_et, fixture.away_score_et = et
        if pens is not None:
            fixture.pen_home, fixture.pen_away = pens
        db.session.add(fixture)
        db.session.commit()
        return fixture

    def group(self, members, status=GroupStatus.ACTIVE.value, rules=True, **rule_values):
        group = Group(name="Test Group", creator_id=members[0].id, status=status)
        db.session.add(group)
        db.session.flush()
        for member in members:
            db.session.add(GroupMember(user_id=member.id, group_id=group.id))
        if rules:
            db.session.add(GroupRules(group_id=group.id, **rule_values))
        db.session.commit()
        return group

    def attach(self, group, fixture):
        group_fixture = GroupFixture(group_id=group.id, fixture_id=fixture.id)
        db.session.add(group_fixture)
        db.session.commit()
        return group_fixture

    def predict(self, group_fixture, user, guess):
        prediction = GroupPrediction(
            group_id=group_fixture.group_id,
            group_fixture_id=group_fixture.id,
            user_id=user.id,
            prediction=guess,
        )
        db.session.add(prediction)
        db.session.commit()
        return prediction


@pytest.fixture
def factory(app):
    return Factory()


class RecordingNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.rank_changes = []
        self.leader_changes = []

    def emit_rank_change(self, group_id, user_id, old_rank, new_rank, username=None):
        if self.fail:
            raise RuntimeError("socket down")
        self.rank_changes.append((group_id, user_id, old_rank, new_rank))

    def emit_leader_change(self, group_id, user_id, username=None):
        if self.fail:
            raise RuntimeError("socket down")
        self.leader_changes.append((group_id, user_id))


@pytest.fixture
def notifier():
    return RecordingNotifier()
