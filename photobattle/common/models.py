from datetime import UTC, datetime
from functools import partial
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Helper for timezone-aware timestamps
_utc_now = partial(datetime.now, tz=UTC)

BASE_RATING = 1200


def _new_id() -> str:
    return uuid4().hex


class DocumentModel(BaseModel):
    """Base for persisted documents.

    Documents are stored with camelCase keys (``storagePath``, ``photoAliases``)
    and can be built from either camelCase or snake_case names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class RatingRecord(DocumentModel):
    """Per-photo rating projection folded from the vote history."""

    id: str
    rating: int = BASE_RATING
    wins: int = 0
    losses: int = 0
    total_votes: int = 0

    @field_validator("rating", "wins", "losses", "total_votes")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        """Validate counters and rating are never negative."""
        if v < 0:
            raise ValueError("rating and vote counters must be >= 0")
        return v


class BattlePhoto(RatingRecord):
    url: str = ""
    storage_path: str = ""
    library_id: str | None = None
    thumbnail_url: str | None = None
    thumbnail_path: str | None = None

    def reset_rating(self) -> "BattlePhoto":
        """Return a copy with the initial rating and zeroed counters."""
        return self.model_copy(
            update={"rating": BASE_RATING, "wins": 0, "losses": 0, "total_votes": 0}
        )


class LinkHistoryEntry(DocumentModel):
    secret_key: str
    created_at: datetime = Field(default_factory=_utc_now)
    expires_at: datetime | None = None


class PhotoBattle(DocumentModel):
    """One ranking arena owned by a single user.

    ``updated_at`` is the optimistic-concurrency version token. Every committed
    mutation replaces it with a strictly later value.
    """

    id: str
    owner_id: str
    creator_name: str | None = None
    photos: list[BattlePhoto] = Field(default_factory=list)
    photo_aliases: dict[str, str] = Field(default_factory=dict)
    retired_photo_ids: list[str] = Field(default_factory=list)
    secret_key: str
    created_at: datetime = Field(default_factory=_utc_now)
    is_public: bool = False
    link_expires_at: datetime | None = None
    link_history: list[LinkHistoryEntry] = Field(default_factory=list)
    updated_at: datetime | None = None

    @field_validator("photos")
    @classmethod
    def validate_unique_photo_ids(cls, v: list[BattlePhoto]) -> list[BattlePhoto]:
        """Validate photo ids are unique within the battle."""
        ids = [photo.id for photo in v]
        if len(ids) != len(set(ids)):
            raise ValueError("photo ids must be unique within a battle")
        return v

    @property
    def live_ids(self) -> set[str]:
        return {photo.id for photo in self.photos}

    @property
    def retired_ids(self) -> set[str]:
        """Ids that were merged away or deleted and must never become live again."""
        return set(self.retired_photo_ids) | set(self.photo_aliases)

    def find_photo(self, photo_id: str) -> BattlePhoto | None:
        for photo in self.photos:
            if photo.id == photo_id:
                return photo
        return None


class BattleHistoryEntry(DocumentModel):
    """One immutable voting event with the raw ids cast at vote time."""

    id: str = Field(default_factory=_new_id)
    winner_id: str
    loser_id: str
    voter_id: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)


class PhotoStats(DocumentModel):
    yes_votes: int = 0
    total_votes: int = 0
    session_count: int = 0
    last_voted_at: datetime | None = None


class PhotoLibraryItem(DocumentModel):
    """Personal-gallery record a battle photo may point back to."""

    id: str = Field(default_factory=_new_id)
    owner_id: str
    url: str
    storage_path: str
    thumbnail_url: str | None = None
    thumbnail_path: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    stats: PhotoStats = Field(default_factory=PhotoStats)
    session_ids: list[str] = Field(default_factory=list)

    def to_battle_photo(self) -> BattlePhoto:
        return BattlePhoto(
            id=self.id,
            url=self.url,
            storage_path=self.storage_path,
            library_id=self.id,
            thumbnail_url=self.thumbnail_url,
            thumbnail_path=self.thumbnail_path,
        )


class MergeResult(BaseModel):
    """Outcome of a committed merge."""

    battle_id: str
    target_id: str
    merged_id: str
    photos: list[BattlePhoto]
    photo_aliases: dict[str, str]
    updated_at: datetime
    cleanup_errors: list[str] = Field(default_factory=list)


VoteResult = Literal["win", "loss"]
