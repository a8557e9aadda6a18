from photobattle.ranking.aliases import extend_aliases, resolve_alias, validate_aliases
from photobattle.ranking.elo import (
    BASE_RATING,
    K_FACTOR,
    apply_outcome,
    expected_score,
    update_ratings,
)
from photobattle.ranking.replay import order_history, rank_photos, replay_battle

__all__ = [
    "BASE_RATING",
    "K_FACTOR",
    "apply_outcome",
    "expected_score",
    "extend_aliases",
    "order_history",
    "rank_photos",
    "replay_battle",
    "resolve_alias",
    "update_ratings",
    "validate_aliases",
]
