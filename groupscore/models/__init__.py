from groupscore import db  # noqa: F401 - imported for model imports

from .fixture import Fixture
from .group import Group
from .group_fixture import GroupFixture
from .group_member import GroupMember
from .group_rules import GroupRules
from .prediction import GroupPrediction
from .ranking_snapshot import RankingSnapshot
from .user import User

__all__ = [
    "User",
    "Group",
    "GroupMember",
    "GroupRules",
    "Fixture",
    "GroupFixture",
    "GroupPrediction",
    "RankingSnapshot",
]
