"""Enumerations shared by the models and the scoring engine."""

from enum import Enum


class FixtureState(str, Enum):
    NOT_STARTED = "NS"
    LIVE = "LIVE"
    HALF_TIME = "HT"
    FULL_TIME = "FT"
    AFTER_EXTRA_TIME = "AET"
    FULL_TIME_PENALTIES = "FT_PEN"
    POSTPONED = "PST"
    CANCELLED = "CAN"
    INTERRUPTED = "INT"


FINISHED_STATES = frozenset(
    {
        FixtureState.FULL_TIME.value,
        FixtureState.AFTER_EXTRA_TIME.value,
        FixtureState.FULL_TIME_PENALTIES.value,
    }
)
CANCELLED_STATES = frozenset(
    {FixtureState.CANCELLED.value, FixtureState.INTERRUPTED.value}
)
TERMINAL_STATES = FINISHED_STATES | CANCELLED_STATES


class GroupStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ENDED = "ended"


class PredictionMode(str, Enum):
    CORRECT_SCORE = "CorrectScore"
    MATCH_WINNER = "MatchWinner"


class KORoundMode(str, Enum):
    FULL_TIME = "FullTime"
    EXTRA_TIME = "ExtraTime"
    PENALTIES = "Penalties"


class Outcome(str, Enum):
    HOME = "home"
    AWAY = "away"
    DRAW = "draw"
