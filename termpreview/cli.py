"""
CLI for termpreview.

Lets the preview subsystem be driven and inspected outside the host editor.
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from termpreview import __version__
from termpreview.config import Config, GLOBAL_CONFIG_FILE, load_env_file
from termpreview.display import TerminalDisplay, bitmap_from_file
from termpreview.probe import CapabilityProbe
from termpreview.trace import RecordingTrace, setup_logging

# Status text goes to stderr; stdout carries the image data.
console = Console(stderr=True)


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[dim]no[/dim]"


@click.group()
@click.version_option(version=__version__)
@click.option("--config-file", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help=f"Config file (default: {GLOBAL_CONFIG_FILE})")
@click.pass_context
def main(ctx: click.Context, config_file: Optional[Path]):
    """termpreview - inline image previews in the terminal."""
    load_env_file()
    cfg = Config.load(config_file)
    setup_logging(cfg.preview.debug)
    ctx.obj = {"config_file": config_file, "config": cfg}


@main.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--width", type=int, help="Columns to render over (Kitty only)")
@click.option("--debug", is_flag=True, help="Print the protocol trace after the preview")
@click.pass_context
def show(ctx: click.Context, image: Path, width: Optional[int], debug: bool):
    """Preview IMAGE inline using the best supported protocol."""
    try:
        bitmap = bitmap_from_file(image)
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not read image:[/red] {e}")
        sys.exit(1)

    trace = RecordingTrace() if debug else None
    display = TerminalDisplay(config_path=ctx.obj["config_file"], trace=trace)
    outcome = display.preview(bitmap, max_width=width)

    if trace is not None:
        for state, message in trace.events:
            console.print(f"[grey70]\\[{state.value}] {escape(message)}[/grey70]")

    if outcome.delivered:
        note = f" after {', '.join(p.value for p in outcome.attempted[:-1])} failed" if outcome.failover_occurred else ""
        console.print(f"[dim]{image} shown via {outcome.protocol.value}{note}[/dim]", soft_wrap=True)
    else:
        console.print(f"[yellow]No inline preview:[/yellow] {outcome.reason}", soft_wrap=True)
        console.print(f"  {image}")
        sys.exit(1)


@main.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def detect(json_output: bool):
    """Show which graphics protocols this terminal appears to support."""
    probe = CapabilityProbe()
    capabilities = probe.detect()
    reasons = probe.reasons()

    if json_output:
        result = capabilities.to_dict()
        result["reasons"] = {p.value: matched for p, matched in reasons.items()}
        print(json.dumps(result))
        return

    table = Table(title="Terminal graphics support")
    table.add_column("Protocol")
    table.add_column("Capable")
    table.add_column("Matched rules")
    for protocol, matched in reasons.items():
        table.add_row(protocol.value, _yes_no(bool(matched)), ", ".join(matched) or "-")
    console.print(table)

    if not capabilities.supported():
        console.print("\n[yellow]No supported protocol detected.[/yellow] Set SIXEL_PREVIEW=1 to force Sixel.")


@main.command()
@click.pass_context
def config(ctx: click.Context):
    """View the effective configuration."""
    cfg = ctx.obj["config"]
    settings = cfg.preview
    config_file = ctx.obj["config_file"] or GLOBAL_CONFIG_FILE

    console.print(Panel.fit(
        f"[bold]Configuration[/bold]\n\n"
        f"Config file: {config_file}\n\n"
        f"[bold]Preview[/bold]\n"
        f"  Debug trace: {settings.debug}\n"
        f"  Force Sixel: {settings.force_sixel}\n"
        f"  Kitty placement: {settings.kitty_cols} cols x {settings.kitty_rows} rows\n"
        f"  Sixel renderer timeout: {settings.sixel_timeout or 'none'}",
        title="termpreview Config",
    ))

    issues = cfg.validate()
    if issues:
        console.print("\n[red]Issues:[/red]")
        for issue in issues:
            console.print(f"  - {issue}")


if __name__ == "__main__":
    main()
