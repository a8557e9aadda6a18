"""Elo rating update shared by the vote path and history replay.

Elo Rating System:
    Each photo is a "player" and each vote is a decisive game. Ratings move
    in proportion to how surprising the outcome was given both ratings.

    Key formulas:
    - Expected score: E_W = 1 / (1 + 10^((R_L - R_W) / 400))
    - Rating change: R_W' = R_W + K * (1 - E_W), R_L' = R_L + K * (0 - E_L)

    Where:
    - R_W, R_L: Current ratings of the winner and the loser
    - E_W, E_L: Expected scores of the winner and the loser
    - K: K-factor controlling rating volatility (fixed at 32)

    New ratings are rounded half up to integers and floored at 0.

Replay equivalence:
    Ratings recomputed by the replay engine must match the ones the vote path
    produced when the votes were cast. Both paths call ``apply_outcome``; do
    not duplicate the arithmetic anywhere else.

Dependencies:
    - photobattle.common.models: RatingRecord, BASE_RATING
"""

import math

from photobattle.common.models import BASE_RATING, RatingRecord

K_FACTOR = 32

__all__ = [
    "BASE_RATING",
    "K_FACTOR",
    "apply_outcome",
    "expected_score",
    "round_half_up",
    "update_ratings",
]


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability that a photo rated ``rating`` beats ``opponent_rating``.

    Example:
        >>> expected_score(1200, 1200)
        0.5
    """
    return 1 / (1 + 10 ** ((opponent_rating - rating) / 400))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity.

    Python's ``round`` uses banker's rounding, which would drift from ratings
    recorded by the vote path.

    Example:
        >>> round_half_up(2.5), round_half_up(-2.5)
        (3, -2)
    """
    return math.floor(value + 0.5)


def update_ratings(winner_rating: int, loser_rating: int) -> tuple[int, int]:
    """Calculate new ratings after ``winner`` beats ``loser``.

    Args:
        winner_rating: Current rating of the winning photo.
        loser_rating: Current rating of the losing photo.

    Returns:
        Tuple of (new_winner_rating, new_loser_rating), both >= 0.

    Example:
        >>> update_ratings(1200, 1200)
        (1216, 1184)

    Negative case:
        >>> update_ratings(0, 10)
        (16, 0)
    """
    expected_winner = expected_score(winner_rating, loser_rating)
    expected_loser = expected_score(loser_rating, winner_rating)

    new_winner = round_half_up(winner_rating + K_FACTOR * (1 - expected_winner))
    new_loser = round_half_up(loser_rating + K_FACTOR * (0 - expected_loser))

    return max(0, new_winner), max(0, new_loser)


def apply_outcome(winner: RatingRecord, loser: RatingRecord) -> None:
    """Apply one decisive vote to two rating records in place."""
    winner.rating, loser.rating = update_ratings(winner.rating, loser.rating)
    winner.wins += 1
    winner.total_votes += 1
    loser.losses += 1
    loser.total_votes += 1
