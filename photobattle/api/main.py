"""FastAPI application for photo battles.

Endpoints:

- Pair selection and voting for anyone holding the battle id
- Battle creation, photo upload, share links and visibility for the owner
- Photo deletion and merging for the battle owner
- Ranked results for holders of the secret share key

Architecture:
    Services are built once in the lifespan handler and kept on ``app.state``:
    - BattleRepository: battle documents and history logs under ``data_dir``
    - VoteService: live Elo updates
    - MergeService: merges under optimistic concurrency, with retry
    - SessionService: owner operations (create, upload, link, visibility,
      delete, results, merge)
    - PairSelector: chooses the next comparison

Identity:
    The authenticated user id arrives in the ``X-User-Id`` header, set by
    the gateway in front of this app. Owner-only endpoints reject requests
    without it.
"""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Body, FastAPI, Header, HTTPException, Request

from photobattle.api.api_exceptions import raise_for_battle_error
from photobattle.api.api_models import (
    BattleResponse,
    CreateBattleRequest,
    DeletePhotoResponse,
    MergeRequest,
    MergeResponse,
    PairResponse,
    PhotoResponse,
    ResultsResponse,
    UploadResponse,
    VisibilityRequest,
    VoteRequest,
    VoteResponse,
)
from photobattle.common.config import Settings
from photobattle.common.errors import AlreadyMergedError, BattleError
from photobattle.common.logging import configure_log_path, generate_id, get_logger, set_request_id
from photobattle.common.models import BattlePhoto, PhotoBattle
from photobattle.common.repository import BattleRepository
from photobattle.common.retry import MaxRetriesError
from photobattle.common.storage import BlobStore, GalleryStore
from photobattle.common.yaml_config import resolve_battle_config
from photobattle.services.merge_service import MergeService
from photobattle.services.pair_selector import PairSelector
from photobattle.services.session_service import SessionService
from photobattle.services.vote_service import VoteService

logger = get_logger("api.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI application.

    Initializes all services on startup.
    """
    app.state.settings = Settings()
    app.state.battle_config = resolve_battle_config(app.state.settings)
    configure_log_path(app.state.settings.resolved_log_path)

    data_dir = app.state.settings.data_dir
    app.state.repo = BattleRepository(data_dir=data_dir)
    app.state.blob_store = BlobStore(data_dir / "blobs")
    app.state.gallery = GalleryStore(data_dir)

    app.state.vote_service = VoteService(repo=app.state.repo, gallery=app.state.gallery)
    app.state.merge_service = MergeService(
        repo=app.state.repo,
        blob_store=app.state.blob_store,
        gallery=app.state.gallery,
        config=app.state.battle_config,
    )
    app.state.session_service = SessionService(
        repo=app.state.repo,
        blob_store=app.state.blob_store,
        gallery=app.state.gallery,
        merge_service=app.state.merge_service,
        config=app.state.battle_config,
    )
    app.state.pair_selector = PairSelector(
        exploration_vote_threshold=app.state.battle_config.exploration_vote_threshold
    )

    logger.info("Photo battle API started", metadata={"data_dir": str(data_dir)})
    yield


app = FastAPI(title="Photo Battle", lifespan=lifespan)


@app.middleware("http")
async def assign_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or generate_id()
    set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        set_request_id(None)
    response.headers["X-Request-Id"] = request_id
    return response


def _require_user(user_id: str | None) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Sign in to manage this session.")
    return user_id


def _photo_response(photo: BattlePhoto) -> PhotoResponse:
    return PhotoResponse(
        id=photo.id,
        url=photo.url,
        thumbnail_url=photo.thumbnail_url,
        rating=photo.rating,
        wins=photo.wins,
        losses=photo.losses,
        total_votes=photo.total_votes,
    )


def _battle_response(battle: PhotoBattle) -> BattleResponse:
    return BattleResponse(
        id=battle.id,
        creator_name=battle.creator_name,
        secret_key=battle.secret_key,
        link_expires_at=battle.link_expires_at,
        is_public=battle.is_public,
        photos=[_photo_response(photo) for photo in battle.photos],
        photo_aliases=battle.photo_aliases,
        updated_at=battle.updated_at.isoformat(),
    )


@app.post("/api/battles", response_model=BattleResponse)
def create_battle(
    create_request: CreateBattleRequest,
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
) -> BattleResponse:
    """Start the caller's battle from their gallery, or add gallery photos to it.

    Raises:
        HTTPException: 401 without a signed-in user
        HTTPException: 400 if the gallery is empty or nothing selected exists
    """
    owner_id = _require_user(x_user_id)
    try:
        battle = request.app.state.session_service.create_session_from_library(
            owner_id, create_request.library_ids, creator_name=create_request.creator_name
        )
    except BattleError as e:
        raise_for_battle_error(e)

    return _battle_response(battle)


@app.post("/api/photos", response_model=UploadResponse)
def upload_photo(
    filename: str,
    data: Annotated[bytes, Body(media_type="application/octet-stream")],
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
) -> UploadResponse:
    """Store the raw request body as a photo in the caller's gallery.

    The photo also joins the caller's battle when one exists.

    Raises:
        HTTPException: 401 without a signed-in user
        HTTPException: 422 if the body is empty
    """
    owner_id = _require_user(x_user_id)
    try:
        item = request.app.state.session_service.upload_photo(owner_id, filename, data)
    except BattleError as e:
        raise_for_battle_error(e)

    return UploadResponse(id=item.id, url=item.url, storage_path=item.storage_path)


@app.post("/api/battles/{battle_id}/link", response_model=BattleResponse)
def rotate_link(
    battle_id: str,
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
) -> BattleResponse:
    """Issue a new share key for the battle (owner only)."""
    caller_id = _require_user(x_user_id)
    try:
        battle = request.app.state.session_service.rotate_link(battle_id, caller_id)
    except BattleError as e:
        raise_for_battle_error(e)

    return _battle_response(battle)


@app.put("/api/battles/{battle_id}/visibility", response_model=BattleResponse)
def set_visibility(
    battle_id: str,
    visibility_request: VisibilityRequest,
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
) -> BattleResponse:
    """List the battle publicly or hide it again (owner only)."""
    caller_id = _require_user(x_user_id)
    try:
        battle = request.app.state.session_service.set_public(
            battle_id, visibility_request.is_public, caller_id
        )
    except BattleError as e:
        raise_for_battle_error(e)

    return _battle_response(battle)


@app.get("/api/battles/{battle_id}/pair", response_model=PairResponse)
def get_pair(battle_id: str, request: Request) -> PairResponse:
    """Choose the next two photos to compare.

    Raises:
        HTTPException: 404 if the battle doesn't exist
        HTTPException: 400 if the battle has fewer than two photos
    """
    try:
        battle = request.app.state.repo.load(battle_id)
        left, right = request.app.state.pair_selector.choose_pair(battle.photos)
    except BattleError as e:
        raise_for_battle_error(e)

    return PairResponse(left=_photo_response(left), right=_photo_response(right))


@app.post("/api/battles/{battle_id}/votes", response_model=VoteResponse)
def submit_vote(battle_id: str, vote_request: VoteRequest, request: Request) -> VoteResponse:
    """Record a vote and return both photos' new ratings.

    Raises:
        HTTPException: 404 if the battle doesn't exist
        HTTPException: 400 if either photo is not live or both are the same
    """
    try:
        battle = request.app.state.vote_service.submit_vote(
            battle_id,
            vote_request.winner_id,
            vote_request.loser_id,
            voter_id=vote_request.voter_id,
        )
    except BattleError as e:
        raise_for_battle_error(e)

    winner = battle.find_photo(vote_request.winner_id)
    loser = battle.find_photo(vote_request.loser_id)
    return VoteResponse(
        winner=_photo_response(winner),
        loser=_photo_response(loser),
        updated_at=battle.updated_at.isoformat(),
    )


@app.delete("/api/battles/{battle_id}/photos/{photo_id}", response_model=DeletePhotoResponse)
def delete_photo(
    battle_id: str,
    photo_id: str,
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
) -> DeletePhotoResponse:
    """Remove a photo from the battle (owner only)."""
    caller_id = _require_user(x_user_id)
    try:
        cleanup_errors = request.app.state.session_service.delete_photo(
            battle_id, photo_id, caller_id
        )
    except BattleError as e:
        raise_for_battle_error(e)

    return DeletePhotoResponse(photo_id=photo_id, cleanup_errors=cleanup_errors)


@app.post("/api/battles/{battle_id}/merge", response_model=MergeResponse)
def merge_photos(
    battle_id: str,
    merge_request: MergeRequest,
    request: Request,
    x_user_id: Annotated[str | None, Header()] = None,
) -> MergeResponse:
    """Merge ``merged_id`` into ``target_id`` and recompute ratings.

    A request for two photos that are already combined succeeds with
    ``status="already_merged"`` and leaves the battle untouched.

    Raises:
        HTTPException: 403 if the caller does not own the battle
        HTTPException: 404 if the battle or either photo doesn't exist
        HTTPException: 409 if the battle kept changing during every attempt
    """
    caller_id = _require_user(x_user_id)
    service = request.app.state.session_service
    try:
        result = service.merge_photos(
            battle_id, merge_request.target_id, merge_request.merged_id, caller_id
        )
    except AlreadyMergedError as e:
        battle = request.app.state.repo.load(battle_id)
        return MergeResponse(
            status="already_merged",
            target_id=e.canonical_id,
            photos=[_photo_response(photo) for photo in battle.photos],
            photo_aliases=battle.photo_aliases,
            updated_at=battle.updated_at.isoformat() if battle.updated_at else None,
        )
    except (BattleError, MaxRetriesError) as e:
        raise_for_battle_error(e)

    return MergeResponse(
        status="merged",
        target_id=result.target_id,
        photos=[_photo_response(photo) for photo in result.photos],
        photo_aliases=result.photo_aliases,
        updated_at=result.updated_at.isoformat(),
        cleanup_errors=result.cleanup_errors,
    )


@app.get("/api/battles/{battle_id}/results", response_model=ResultsResponse)
def get_results(battle_id: str, key: str, request: Request) -> ResultsResponse:
    """Ranked photos for holders of the share link's secret key."""
    try:
        photos = request.app.state.session_service.load_results(battle_id, key)
        battle = request.app.state.repo.load(battle_id)
    except BattleError as e:
        raise_for_battle_error(e)

    return ResultsResponse(
        battle_id=battle_id,
        creator_name=battle.creator_name,
        photos=[_photo_response(photo) for photo in photos],
    )
