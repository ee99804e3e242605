import pyfiglet
from rich.align import Align
from rich.console import Console, Group
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.text import Text

from timeblock_pro.schema import BlockType


def big_text(text: str, font: str = "big") -> str:
    return pyfiglet.Figlet(font=font).renderText(text)


def focus_view(
    block_type: BlockType,
    countdown: str,
    progress: float,
    status: str,
    tasks: list[str] | None = None,
) -> Panel:
    """Builds the full-screen focus display: block name, large countdown, progress, tasks."""
    header = Text(block_type.name, style="bold", justify="center")
    digits = Text(big_text(countdown), style="bold green", justify="center")
    bar = ProgressBar(total=100, completed=progress, width=50)
    footer = Text(status, style="dim", justify="center")

    parts = [header, digits, Align.center(bar), footer]
    if tasks:
        task_lines = Text("\n".join(f"• {t}" for t in tasks), justify="left")
        parts.append(Align.center(task_lines))

    return Panel(Align.center(Group(*parts), vertical="middle"), border_style="cyan")


def display_completion(console: Console | None = None):
    """Shows a centered 'time's up' banner once a focus session completes."""
    console = console or Console()
    art = Text(big_text("TIME'S UP", font="block"), style="bold green", justify="center")
    subtext = Text(
        "\nFocus session complete. Take a short break.",
        justify="center",
        style="bold yellow",
    )
    console.clear()
    console.print(Align.center(art + subtext, vertical="middle"))
