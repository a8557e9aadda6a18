"""Pair selection for the next comparison shown to a voter.

This module picks two photos per request, balancing exploration of new
photos against refining the order of established ones.

Strategy:
    - Rating deviation (RD) shrinks as a photo collects votes:
      RD = 30 + (350 - 30) * e^(-0.15 * votes)
    - Exploration: photos with fewer than ``exploration_vote_threshold``
      votes are paired with each other first. A single new photo is paired
      with one of the three established photos rated closest to 1200.
    - Exploitation: an anchor is drawn from the top 30% by priority
      (high RD, few votes), and its opponent is drawn from the best
      candidates by information gain, weighted by that gain.
    - Left/right order is randomised to avoid position bias.
"""

import math
import random
from dataclasses import dataclass

from photobattle.common.errors import NotEnoughPhotosError
from photobattle.common.models import BASE_RATING, BattlePhoto

MIN_RD = 30.0
MAX_RD = 350.0
RD_DECAY_RATE = 0.15
GLICKO_Q = math.log(10) / 400


def rating_deviation(total_votes: int) -> float:
    """Confidence radius for a photo's rating; smaller means more certain.

    Example:
        >>> rating_deviation(0)
        350.0
    """
    return MIN_RD + (MAX_RD - MIN_RD) * math.exp(-RD_DECAY_RATE * total_votes)


def glicko_expected_score(rating_a: float, rating_b: float, rd_a: float, rd_b: float) -> float:
    """Expected score of A against B, damped by both rating deviations."""
    g = 1 / math.sqrt(1 + 3 * GLICKO_Q**2 * (rd_a**2 + rd_b**2) / math.pi**2)
    return 1 / (1 + 10 ** (-g * (rating_a - rating_b) / 400))


def information_gain(photo_a: BattlePhoto, photo_b: BattlePhoto) -> float:
    """Score how much a comparison between two photos would teach us.

    Outcome variance peaks for evenly matched photos; the uncertainty term
    favours photos with few votes.
    """
    rd_a = rating_deviation(photo_a.total_votes)
    rd_b = rating_deviation(photo_b.total_votes)
    expected = glicko_expected_score(photo_a.rating, photo_b.rating, rd_a, rd_b)
    outcome_variance = expected * (1 - expected)
    uncertainty = (rd_a + rd_b) / (2 * MAX_RD)
    return 0.7 * outcome_variance + 0.3 * uncertainty


@dataclass
class _Candidate:
    photo: BattlePhoto
    gain: float
    rating_diff: float


class PairSelector:
    """Selects the next pair of photos to compare.

    Args:
        exploration_vote_threshold: Photos with fewer votes count as new.
        rng: Random generator, injectable for deterministic tests.
    """

    def __init__(self, exploration_vote_threshold: int = 5, rng: random.Random | None = None):
        self._threshold = exploration_vote_threshold
        self._rng = rng or random.Random()

    def choose_pair(self, photos: list[BattlePhoto]) -> tuple[BattlePhoto, BattlePhoto]:
        """Choose (left, right) photos for the next vote.

        Raises:
            NotEnoughPhotosError: If fewer than two photos are available.
        """
        if len(photos) < 2:
            raise NotEnoughPhotosError()

        new_photos = [photo for photo in photos if photo.total_votes < self._threshold]

        if len(new_photos) >= 2:
            first, second = self._rng.sample(new_photos, 2)
            return self._orient(first, second)

        if len(new_photos) == 1:
            newcomer = new_photos[0]
            established = [photo for photo in photos if photo.id != newcomer.id]
            established.sort(key=lambda photo: abs(photo.rating - BASE_RATING))
            opponent = self._rng.choice(established[:3])
            return self._orient(newcomer, opponent)

        return self._choose_established_pair(photos)

    def _choose_established_pair(
        self, photos: list[BattlePhoto]
    ) -> tuple[BattlePhoto, BattlePhoto]:
        def priority(photo: BattlePhoto) -> float:
            return rating_deviation(photo.total_votes) / MAX_RD + 1 / (
                1 + photo.total_votes * 0.1
            )

        by_priority = sorted(photos, key=priority, reverse=True)
        anchor_pool_size = max(2, math.ceil(len(by_priority) * 0.3))
        anchor = self._rng.choice(by_priority[:anchor_pool_size])

        candidates = [
            _Candidate(
                photo=opponent,
                gain=information_gain(anchor, opponent),
                rating_diff=abs(anchor.rating - opponent.rating),
            )
            for opponent in by_priority
            if opponent.id != anchor.id
        ]
        # Gains within 0.01 of each other are a tie; prefer closer ratings then
        candidates.sort(key=lambda c: (-round(c.gain, 2), c.rating_diff))

        pool_size = max(3, math.ceil(len(candidates) * 0.2))
        pool = candidates[:pool_size]
        chosen = self._rng.choices(pool, weights=[c.gain for c in pool], k=1)[0]

        return self._orient(anchor, chosen.photo)

    def _orient(
        self, first: BattlePhoto, second: BattlePhoto
    ) -> tuple[BattlePhoto, BattlePhoto]:
        if self._rng.random() < 0.5:
            return first, second
        return second, first


__all__ = [
    "PairSelector",
    "glicko_expected_score",
    "information_gain",
    "rating_deviation",
]
