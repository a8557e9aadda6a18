"""Command-line tools for operating photo battles.

Commands:
    results   Print a battle's leaderboard
    replay    Recompute ratings from history and show drift, without writing
    merge     Merge one photo into another and recompute ratings

Data is read from ``PHOTOBATTLE_DATA_DIR`` (default ``data``) unless
``--data-dir`` is given.
"""

import sys
from pathlib import Path
from typing import Annotated

import typer

from photobattle.common.config import Settings
from photobattle.common.display import create_drift_table, create_leaderboard_table, get_console
from photobattle.common.errors import AlreadyMergedError, BattleError
from photobattle.common.logging import configure_log_path, generate_id, set_run_id
from photobattle.common.repository import BattleRepository
from photobattle.common.retry import MaxRetriesError
from photobattle.common.storage import BlobStore, GalleryStore
from photobattle.common.yaml_config import resolve_battle_config
from photobattle.ranking.replay import rank_photos, replay_battle
from photobattle.services.merge_service import MergeService

app = typer.Typer(help="Photo battle ranking tools")

DataDirOption = Annotated[
    Path | None, typer.Option("--data-dir", help="Directory holding battles and logs")
]


def _settings(data_dir: Path | None) -> Settings:
    settings = Settings() if data_dir is None else Settings(data_dir=data_dir)
    configure_log_path(settings.resolved_log_path)
    set_run_id(generate_id())
    return settings


@app.command()
def results(
    battle_id: Annotated[str, typer.Argument(help="Battle id (the owner's user id)")],
    data_dir: DataDirOption = None,
) -> None:
    """Print the battle's photos ranked by rating."""
    console = get_console()
    settings = _settings(data_dir)
    repo = BattleRepository(data_dir=settings.data_dir)

    try:
        battle = repo.load(battle_id)
    except BattleError as e:
        console.print(f"[error]{e}[/error]")
        sys.exit(1)

    console.print(create_leaderboard_table(rank_photos(battle.photos), title=f"Battle {battle_id}"))
    if battle.photo_aliases:
        console.print(f"[dim]{len(battle.photo_aliases)} merged photo alias(es)[/dim]")


@app.command()
def replay(
    battle_id: Annotated[str, typer.Argument(help="Battle id (the owner's user id)")],
    data_dir: DataDirOption = None,
) -> None:
    """Recompute ratings from the vote history and compare with stored ones.

    Nothing is written. Drift is expected for battles with deleted photos,
    since deletes do not trigger a replay.
    """
    console = get_console()
    settings = _settings(data_dir)
    config = resolve_battle_config(settings)
    repo = BattleRepository(data_dir=settings.data_dir)

    try:
        battle = repo.load(battle_id)
        history = repo.fetch_history(battle_id)
        replayed = replay_battle(
            history,
            battle.photo_aliases,
            battle.photos,
            include_retired=config.replay_retired_opponents,
        )
    except BattleError as e:
        console.print(f"[error]{e}[/error]")
        sys.exit(1)

    console.print(create_drift_table(battle.photos, replayed))
    drifted = [photo for photo in battle.photos if replayed[photo.id].rating != photo.rating]
    console.print(
        f"[info]{len(history)} history entries replayed, "
        f"{len(drifted)} of {len(battle.photos)} photo(s) drifted[/info]"
    )


@app.command()
def merge(
    battle_id: Annotated[str, typer.Argument(help="Battle id (the owner's user id)")],
    target_id: Annotated[str, typer.Argument(help="Photo that survives")],
    merged_id: Annotated[str, typer.Argument(help="Photo folded into the target")],
    caller_id: Annotated[
        str | None,
        typer.Option("--as-user", help="User performing the merge (default: battle owner)"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Merge MERGED_ID into TARGET_ID and recompute all ratings."""
    console = get_console()
    settings = _settings(data_dir)
    config = resolve_battle_config(settings)
    repo = BattleRepository(data_dir=settings.data_dir)
    service = MergeService(
        repo=repo,
        blob_store=BlobStore(settings.data_dir / "blobs"),
        gallery=GalleryStore(settings.data_dir),
        config=config,
    )

    try:
        result = service.merge_with_retry(battle_id, target_id, merged_id, caller_id or battle_id)
    except AlreadyMergedError as e:
        console.print(f"[warning]Photos are already combined into {e.canonical_id}[/warning]")
        return
    except MaxRetriesError as e:
        console.print(f"[error]Merge gave up after {e.max_attempts} attempts: {e}[/error]")
        sys.exit(1)
    except BattleError as e:
        console.print(f"[error]{e}[/error]")
        sys.exit(1)

    console.print(f"[success]Merged {result.merged_id} into {result.target_id}[/success]")
    console.print(create_leaderboard_table(rank_photos(result.photos), title=f"Battle {battle_id}"))
    for error in result.cleanup_errors:
        console.print(f"[warning]Cleanup incomplete: {error}[/warning]")


if __name__ == "__main__":
    app()
