"""Vote submission: the live path that grows the history log.

Each vote updates the two photos' ratings with the shared Elo function,
appends one history entry carrying the raw ids, and bumps the battle's
version token, all in one transaction. Gallery stats are updated afterwards
and never fail the vote.

Dependencies:
    - photobattle.ranking.elo: shared Elo update
    - photobattle.common.repository: battle transactions
"""

from photobattle.common.errors import InvalidVoteError
from photobattle.common.logging import get_logger
from photobattle.common.models import BattleHistoryEntry, PhotoBattle
from photobattle.common.repository import BattleRepository
from photobattle.common.storage import GalleryStore
from photobattle.ranking.elo import apply_outcome

logger = get_logger("services.vote_service")


class VoteService:
    """Service recording pairwise votes for a battle."""

    def __init__(self, repo: BattleRepository, gallery: GalleryStore | None = None) -> None:
        self._repo = repo
        self._gallery = gallery

    def submit_vote(
        self,
        battle_id: str,
        winner_id: str,
        loser_id: str,
        voter_id: str | None = None,
    ) -> PhotoBattle:
        """Record that ``winner_id`` beat ``loser_id``.

        Args:
            battle_id: Battle the vote belongs to
            winner_id: Live photo id that won
            loser_id: Live photo id that lost
            voter_id: Optional anonymous voter id stored with the history entry

        Returns:
            The committed battle document

        Raises:
            InvalidVoteError: If an id is missing, not live, or both are the same
            SessionNotFoundError: If the battle doesn't exist
        """
        if not battle_id or not winner_id or not loser_id:
            raise InvalidVoteError("sessionId, winnerId, and loserId are required.")
        if winner_id == loser_id:
            raise InvalidVoteError("A photo cannot win against itself.")

        with self._repo.transaction(battle_id) as txn:
            photos = [photo.model_copy() for photo in txn.snapshot.photos]
            winner = next((photo for photo in photos if photo.id == winner_id), None)
            loser = next((photo for photo in photos if photo.id == loser_id), None)
            if winner is None or loser is None:
                raise InvalidVoteError()

            apply_outcome(winner, loser)

            txn.update(photos=photos)
            txn.append_history(
                BattleHistoryEntry(winner_id=winner_id, loser_id=loser_id, voter_id=voter_id)
            )

        committed = txn.require_committed()

        logger.info(
            "Vote recorded",
            metadata={
                "battle_id": battle_id,
                "winner_id": winner_id,
                "loser_id": loser_id,
                "winner_rating": winner.rating,
                "loser_rating": loser.rating,
            },
        )

        self._update_library_stats(committed, winner.library_id, loser.library_id)
        return committed

    def _update_library_stats(
        self, battle: PhotoBattle, winner_library_id: str | None, loser_library_id: str | None
    ) -> None:
        if self._gallery is None:
            return
        for library_id, result in ((winner_library_id, "win"), (loser_library_id, "loss")):
            if not library_id:
                continue
            try:
                self._gallery.record_vote(battle.owner_id, library_id, result, battle.id)
            except Exception as e:
                logger.warning(
                    "Unable to update library stats (continuing)",
                    metadata={"battle_id": battle.id, "library_id": library_id, "error": str(e)},
                )
