"""Rebuild battle ratings by replaying the vote history.

Ratings stored on a battle are a projection of its history log. When two
photo identities are merged the projection cannot be patched: Elo outcomes
depend on the opponent's rating at the time of the match. Instead the whole
log is folded again from the initial rating, with every raw id resolved
through the alias map, as if the merged photos had always been one contestant.

Dependencies:
    - photobattle.ranking.elo: shared Elo update
    - photobattle.ranking.aliases: alias resolution
"""

from collections.abc import Iterable, Mapping

from photobattle.common.models import BattleHistoryEntry, BattlePhoto, RatingRecord
from photobattle.ranking.aliases import resolve_alias
from photobattle.ranking.elo import apply_outcome


def order_history(history: Iterable[BattleHistoryEntry]) -> list[BattleHistoryEntry]:
    """Sort history entries by creation time.

    The sort is stable, so entries with identical timestamps keep the order in
    which the store enumerated them.
    """
    return sorted(history, key=lambda entry: entry.created_at)


def replay_battle(
    history: Iterable[BattleHistoryEntry],
    aliases: Mapping[str, str],
    photos: Iterable[BattlePhoto],
    include_retired: bool = True,
) -> dict[str, BattlePhoto]:
    """Recompute rating records for every live photo from the history log.

    Args:
        history: All history entries recorded for the battle, in any order.
        aliases: Alias map to resolve raw ids with, including any merge edge
            being evaluated.
        photos: The live photos. Their metadata is kept, their ratings and
            counters are recomputed from scratch.
        include_retired: When True, a canonical id that is not live (a deleted
            photo) still takes part in the fold so its opponents' ratings match
            the vote path. When False, entries touching such ids are skipped.

    Returns:
        Mapping from live photo id to a fresh BattlePhoto. Retired contestants
        are never returned.

    Example:
        >>> a, b = BattlePhoto(id="a"), BattlePhoto(id="b")
        >>> entry = BattleHistoryEntry(winner_id="a", loser_id="b")
        >>> result = replay_battle([entry], {}, [a, b])
        >>> result["a"].rating, result["b"].rating
        (1216, 1184)

    Negative case:
        >>> entry = BattleHistoryEntry(winner_id="a", loser_id="b")
        >>> replay_battle([entry], {"b": "a"}, [BattlePhoto(id="a")])["a"].total_votes
        0
    """
    live: dict[str, BattlePhoto] = {photo.id: photo.reset_rating() for photo in photos}
    retired: dict[str, RatingRecord] = {}

    def ensure_record(photo_id: str) -> RatingRecord:
        if photo_id in live:
            return live[photo_id]
        if photo_id not in retired:
            retired[photo_id] = RatingRecord(id=photo_id)
        return retired[photo_id]

    for entry in order_history(history):
        winner_id = resolve_alias(entry.winner_id, aliases)
        loser_id = resolve_alias(entry.loser_id, aliases)

        if not winner_id or not loser_id:
            continue

        # Votes between two photos that are now one contestant carry no signal
        if winner_id == loser_id:
            continue

        if not include_retired and (winner_id not in live or loser_id not in live):
            continue

        apply_outcome(ensure_record(winner_id), ensure_record(loser_id))

    return live


def rank_photos(photos: Iterable[BattlePhoto]) -> list[BattlePhoto]:
    """Order photos by rating, highest first. Ties keep their input order."""
    return sorted(photos, key=lambda photo: photo.rating, reverse=True)
