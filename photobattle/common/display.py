from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from photobattle.common.models import BattlePhoto

CORAL = "#FF7F50"
TEAL = "#20B2AA"


_battle_theme = Theme(
    {
        "primary": CORAL,
        "accent": TEAL,
        "bold": "bold",
        "success": "green bold",
        "error": "red bold",
        "warning": "yellow bold",
        "info": "blue bold",
    }
)


_console: Console | None = None


def get_theme() -> Theme:
    return _battle_theme


def get_console(force_terminal: bool | None = None) -> Console:
    global _console

    if _console is None or force_terminal is not None:
        _console = Console(
            theme=_battle_theme,
            force_terminal=force_terminal,
            legacy_windows=False,
        )

    return _console


def rating_delta(stored: int, replayed: int) -> Text:
    delta = replayed - stored
    if delta == 0:
        return Text("0", style="dim")
    return Text(f"{delta:+d}", style="warning")


def create_leaderboard_table(photos: list[BattlePhoto], title: str = "Photo Leaderboard") -> Table:
    table = Table(
        title=title,
        title_style=f"bold {CORAL}",
        border_style=TEAL,
        header_style=f"bold {CORAL}",
        row_styles=["", "dim"],
        padding=(0, 1),
    )

    table.add_column("Rank", style="bold", justify="right")
    table.add_column("Photo", style="bold")
    table.add_column("Rating", justify="right")
    table.add_column("W-L", justify="right")
    table.add_column("Win Rate", justify="right")

    if not photos:
        table.add_row("-", "-", "-", "-", "-")
        return table

    for rank, photo in enumerate(photos, start=1):
        win_rate = f"{photo.wins / photo.total_votes * 100:.1f}%" if photo.total_votes else "-"
        table.add_row(
            str(rank), photo.id, str(photo.rating), f"{photo.wins}-{photo.losses}", win_rate
        )

    return table


def create_drift_table(stored: list[BattlePhoto], replayed: dict[str, BattlePhoto]) -> Table:
    """Compare stored ratings against a fresh replay of the history."""
    table = Table(
        title="Replay Drift",
        title_style=f"bold {CORAL}",
        border_style=TEAL,
        header_style=f"bold {CORAL}",
        padding=(0, 1),
    )

    table.add_column("Photo", style="bold")
    table.add_column("Stored", justify="right")
    table.add_column("Replayed", justify="right")
    table.add_column("Delta", justify="right")
    table.add_column("Votes (stored/replayed)", justify="right")

    for photo in stored:
        fresh = replayed[photo.id]
        table.add_row(
            photo.id,
            str(photo.rating),
            str(fresh.rating),
            rating_delta(photo.rating, fresh.rating),
            f"{photo.total_votes}/{fresh.total_votes}",
        )

    return table
