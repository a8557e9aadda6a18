"""Pydantic API models for battle endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class PhotoResponse(BaseModel):
    """A live photo as shown to voters and owners."""

    id: str
    url: str
    thumbnail_url: str | None = None
    rating: int
    wins: int
    losses: int
    total_votes: int


class PairResponse(BaseModel):
    """Response model for the next comparison (left/right already randomised)."""

    left: PhotoResponse
    right: PhotoResponse


class VoteRequest(BaseModel):
    """Request model for submitting a vote."""

    winner_id: str
    loser_id: str
    voter_id: str | None = None


class VoteResponse(BaseModel):
    """Response model for a recorded vote."""

    winner: PhotoResponse
    loser: PhotoResponse
    updated_at: str


class MergeRequest(BaseModel):
    """Request model for merging ``merged_id`` into ``target_id``."""

    target_id: str
    merged_id: str


class MergeResponse(BaseModel):
    """Response model for a merge request.

    ``already_merged`` requests succeed without changing the battle.
    """

    status: Literal["merged", "already_merged"]
    target_id: str
    photos: list[PhotoResponse]
    photo_aliases: dict[str, str]
    updated_at: str | None = None
    cleanup_errors: list[str] = []


class DeletePhotoResponse(BaseModel):
    """Response model for a deleted photo."""

    photo_id: str
    cleanup_errors: list[str]


class ResultsResponse(BaseModel):
    """Ranked photos for a share-link holder."""

    battle_id: str
    creator_name: str | None
    photos: list[PhotoResponse]


class CreateBattleRequest(BaseModel):
    """Request model for starting or refilling the caller's battle.

    An empty ``library_ids`` takes the whole gallery and, for an existing
    battle, issues a fresh share link.
    """

    library_ids: list[str] = []
    creator_name: str | None = None


class VisibilityRequest(BaseModel):
    """Request model for listing a battle publicly or hiding it."""

    is_public: bool


class BattleResponse(BaseModel):
    """The owner's view of a battle, including the current share key."""

    id: str
    creator_name: str | None
    secret_key: str
    link_expires_at: datetime | None
    is_public: bool
    photos: list[PhotoResponse]
    photo_aliases: dict[str, str]
    updated_at: str


class UploadResponse(BaseModel):
    """Response model for a photo added to the caller's gallery."""

    id: str
    url: str
    storage_path: str
