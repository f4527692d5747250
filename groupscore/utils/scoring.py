"""
Scoring engine for group predictions

This module turns one prediction into points for one finished fixture under a
group's rules. Everything here is pure: no database, cache or app context.
For settlement of whole batches see services/settlement_service.py; for
aggregated standings see services/ranking_service.py.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from groupscore.models.enums import FINISHED_STATES, KORoundMode, Outcome, PredictionMode

logger = logging.getLogger(__name__)

_SCORE_PATTERN = re.compile(r"^(\d+)[-:](\d+)$")


class InvalidRulesError(ValueError):
    """Raised when a group's rules cannot be turned into ScoringRules."""


@dataclass(frozen=True)
class ScoringRules:
    prediction_mode: PredictionMode
    on_the_nose_points: int
    correct_difference_points: int
    outcome_points: int
    ko_round_mode: KORoundMode = KORoundMode.FULL_TIME

    @classmethod
    def from_values(
        cls,
        prediction_mode,
        on_the_nose_points,
        correct_difference_points,
        outcome_points,
        ko_round_mode=None,
    ):
        """Build rules from stored values.

        An unknown prediction mode is rejected. An unknown or missing KO mode
        falls back to FullTime so a defined score is always produced.
        """
        try:
            mode = PredictionMode(prediction_mode)
        except ValueError:
            raise InvalidRulesError(f"Unknown prediction mode: {prediction_mode!r}")

        try:
            ko_mode = KORoundMode(ko_round_mode)
        except ValueError:
            logger.warning(
                f"Unknown KO round mode {ko_round_mode!r}, falling back to FullTime"
            )
            ko_mode = KORoundMode.FULL_TIME

        return cls(
            prediction_mode=mode,
            on_the_nose_points=int(on_the_nose_points or 0),
            correct_difference_points=int(correct_difference_points or 0),
            outcome_points=int(outcome_points or 0),
            ko_round_mode=ko_mode,
        )


@dataclass(frozen=True)
class FixtureResult:
    state: str
    home_score_90: Optional[int]
    away_score_90: Optional[int]
    home_score_et: Optional[int] = None
    away_score_et: Optional[int] = None
    pen_home: Optional[int] = None
    pen_away: Optional[int] = None

    @property
    def has_extra_time(self):
        return self.home_score_et is not None and self.away_score_et is not None

    @property
    def has_penalties(self):
        return self.pen_home is not None and self.pen_away is not None


@dataclass(frozen=True)
class ScoreResult:
    points: int = 0
    exact_hit: bool = False
    difference_hit: bool = False
    any_hit: bool = False


NO_SCORE = ScoreResult()


def parse_scores(value) -> Optional[Tuple[int, int]]:
    """Parse "2-1" or "2:1" into (2, 1); None when the text is not exactly two integers."""
    if value is None:
        return None
    match = _SCORE_PATTERN.match(str(value).strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def resolve_actual_score(fixture) -> Optional[Tuple[int, int]]:
    """Resolve the regulation-time score of a fixture.

    Fallback chain, in order:
        1. the structured ``home_score_90``/``away_score_90`` pair
        2. the provider's free-form ``result`` string
        3. unresolved (None)
    """
    home = fixture.home_score_90
    away = fixture.away_score_90
    if home is not None and away is not None:
        return home, away

    result = (fixture.result or "").strip()
    if result:
        return parse_scores(result)
    return None


def fixture_result_from_model(fixture) -> Optional[FixtureResult]:
    """Build the scoring payload from a Fixture row, None when the score is unresolved."""
    actual = resolve_actual_score(fixture)
    if actual is None:
        return None

    return FixtureResult(
        state=fixture.state,
        home_score_90=actual[0],
        away_score_90=actual[1],
        home_score_et=fixture.home_score_et,
        away_score_et=fixture.away_score_et,
        pen_home=fixture.pen_home,
        pen_away=fixture.pen_away,
    )


def outcome_of(home, away):
    if home > away:
        return Outcome.HOME
    if home < away:
        return Outcome.AWAY
    return Outcome.DRAW


def _scored_pair(result, ko_round_mode):
    # ExtraTime only differs from FullTime when the match went to overtime
    if ko_round_mode == KORoundMode.EXTRA_TIME and result.has_extra_time:
        return result.home_score_et, result.away_score_et
    return result.home_score_90, result.away_score_90


def _decisive_outcome(result):
    if result.has_extra_time:
        if result.home_score_et != result.away_score_et:
            return outcome_of(result.home_score_et, result.away_score_et)
        if result.has_penalties:
            return outcome_of(result.pen_home, result.pen_away)
        return Outcome.DRAW

    if result.has_penalties:
        return outcome_of(result.pen_home, result.pen_away)

    return outcome_of(result.home_score_90, result.away_score_90)


def calculate_score(prediction, result, rules):
    """
    Calculate the award for a single prediction.

    Args:
        prediction: Guessed score as "home:away"
        result: FixtureResult for the match
        rules: ScoringRules of the prediction's group

    Returns:
        ScoreResult; NO_SCORE for unfinished fixtures, missing scores or
        malformed guesses.
    """
    if result is None:
        return NO_SCORE
    if getattr(result.state, "value", result.state) not in FINISHED_STATES:
        return NO_SCORE
    if result.home_score_90 is None or result.away_score_90 is None:
        return NO_SCORE

    guess = parse_scores(prediction)
    if guess is None:
        return NO_SCORE
    guess_home, guess_away = guess
    guessed_outcome = outcome_of(guess_home, guess_away)

    # Penalties: outcome only, whatever the prediction mode
    if rules.ko_round_mode == KORoundMode.PENALTIES:
        if guessed_outcome == _decisive_outcome(result):
            return ScoreResult(points=rules.outcome_points, any_hit=True)
        return NO_SCORE

    actual_home, actual_away = _scored_pair(result, rules.ko_round_mode)

    if rules.prediction_mode == PredictionMode.MATCH_WINNER:
        if guessed_outcome == outcome_of(actual_home, actual_away):
            return ScoreResult(points=rules.outcome_points, any_hit=True)
        return NO_SCORE

    if guess_home == actual_home and guess_away == actual_away:
        return ScoreResult(
            points=rules.on_the_nose_points, exact_hit=True, any_hit=True
        )

    if guess_home - guess_away == actual_home - actual_away:
        return ScoreResult(
            points=rules.correct_difference_points, difference_hit=True, any_hit=True
        )

    if guessed_outcome == outcome_of(actual_home, actual_away):
        return ScoreResult(points=rules.outcome_points, any_hit=True)

    return NO_SCORE
