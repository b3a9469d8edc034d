"""
Rich-based terminal dashboard for speedtest results.

All formatting helpers live in ``netspeed.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from netspeed.api import Server
from netspeed.executor import BatchResult
from netspeed.stats import format_bytes, format_latency, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header() -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]netspeed[/bold cyan]\n"
            "[dim]speedtest.net latency, download and upload measurement[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def print_client_info(ip: str, isp: str, location: str = "") -> None:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column(style="dim")
    table.add_column(style="bold")
    table.add_row("IP Address:", ip)
    table.add_row("ISP:", isp)
    if location:
        table.add_row("Country:", location)
    console.print(Panel(table, title="[bold]Client Info[/bold]", border_style="blue"))


def print_server_selection(servers: Sequence[Server], selected: Optional[Server] = None) -> None:
    table = Table(title="Server Selection", box=box.ROUNDED)
    table.add_column("#", style="dim", width=4)
    table.add_column("ID", justify="right")
    table.add_column("Server", style="bold")
    table.add_column("Sponsor")
    table.add_column("Distance", justify="right")
    table.add_column("Latency", justify="right")

    for i, server in enumerate(servers):
        chosen = selected is not None and server.id == selected.id
        table.add_row(
            f"{'>' if chosen else ' '}{i + 1}",
            str(server.id),
            server.name,
            server.sponsor,
            f"{server.distance:.0f} km",
            format_latency(server.latency) if server.latency is not None else "N/A",
            style="green" if chosen else None,
        )

    console.print(table)


def print_speed_result(result: BatchResult, title: str, color: str = "green") -> None:
    """Print a download or upload result panel."""
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Speed", f"[bold {color}]{format_speed(result.speed_kbps)}[/bold {color}]")
    table.add_row("Data Transferred", format_bytes(result.bytes_total))
    table.add_row("Duration", f"{result.duration_ms / 1000:.1f} s")
    table.add_row("Transfers", str(result.units))
    if result.failed_units:
        table.add_row("Failed", f"[red]{result.failed_units}[/red]")
    console.print(table)


def print_final_results(
    latency_ms: Optional[int],
    download_kbps: Optional[float],
    upload_kbps: Optional[float],
    server_name: str,
    server_sponsor: str,
) -> None:
    def _or_skipped(value, fmt) -> str:  # noqa: ANN001
        return fmt(value) if value is not None else "[dim]skipped[/dim]"

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Server:[/bold cyan] {server_name} ({server_sponsor})\n\n"
            f"[bold white]   Latency:[/bold white]  [bold yellow]{_or_skipped(latency_ms, format_latency)}[/bold yellow]\n"
            f"[bold white]   Download:[/bold white]  [bold green]{_or_skipped(download_kbps, format_speed)}[/bold green]\n"
            f"[bold white]   Upload:[/bold white]  [bold blue]{_or_skipped(upload_kbps, format_speed)}[/bold blue]",
            title="[bold]Results[/bold]",
            border_style="cyan",
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Progress display
# ---------------------------------------------------------------------------

class ProgressDisplay:
    """Manages a ``rich`` progress bar during download / upload tests."""

    def __init__(self) -> None:
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.description}"),
            BarColumn(bar_width=40),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[bold cyan]{task.fields[speed]}[/bold cyan]"),
            TimeElapsedColumn(),
            console=console,
        )
        self._task_id = None

    def start(self, description: str) -> None:
        self.progress.start()
        self._task_id = self.progress.add_task(description, total=100, speed="")

    def update(self, progress: float, speed_kbps: float = 0) -> None:
        if self._task_id is None:
            return
        speed_str = format_speed(speed_kbps) if speed_kbps > 0 else "..."
        self.progress.update(self._task_id, completed=progress * 100, speed=speed_str)

    def stop(self) -> None:
        self.progress.stop()
