"""Command line interface for tokensmith.

Commands build a TokenEngine from the loaded configuration, read token files
(YAML or JSON), and render results with rich tables and panels.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import __version__
from .config import get_config, load_config
from .files import FilePersistence, load_token_file, save_token_file
from .token_engine import (
    TokenEngine,
    TokenEngineError,
    NamingScheme,
    ComplianceStatus,
    STEP_LABELS,
    calculate_contrast_ratio,
    pick_on_tone,
)
from .token_engine.schema import path_to_str
from .token_engine.utils import (
    AA_RATIO,
    AAA_RATIO,
    blend_over,
    deep_merge_dict,
    format_ratio,
    meets_wcag_contrast,
    normalize_hex,
    validate_color_accessibility,
)

STATUS_STYLES = {
    ComplianceStatus.PASS: "green",
    ComplianceStatus.VIOLATION: "red",
    ComplianceStatus.UNSATISFIABLE: "red bold",
    ComplianceStatus.UNRESOLVED: "yellow",
}


def get_console() -> Console:
    return Console()


def setup_logging(level: str) -> None:
    """Route log records through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _swatch(hex_color: str) -> Text:
    return Text("      ", style=f"on {hex_color}")


def _load_engine(ctx, files: Iterable[str]) -> TokenEngine:
    """Build an engine and import the given token files, merged in order."""
    document = {}
    for file_path in files:
        document = deep_merge_dict(document, load_token_file(Path(file_path)))

    engine = TokenEngine.from_config(ctx.obj['config'])
    engine.load_document(document)
    return engine


def _fail(message: str) -> None:
    get_console().print(f"[red]{message}[/red]")
    sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name="tokensmith")
@click.option("--config", type=click.Path(), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx, config, verbose):
    """tokensmith - design tokens, color scales and contrast compliance."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    # Load configuration
    try:
        if config:
            ctx.obj['config'] = load_config(Path(config))
        else:
            ctx.obj['config'] = get_config()
    except (OSError, ValueError) as e:
        _fail(f"Configuration error: {e}")

    setup_logging("DEBUG" if verbose else ctx.obj['config'].log_level)


@main.command()
@click.argument('seed')
@click.option('--name', '-n', help='Family name (derived from the seed if omitted)')
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@click.pass_context
def scale(ctx, seed: str, name: Optional[str], output_format: str):
    """Synthesize a 12-step color scale from SEED."""
    try:
        engine = TokenEngine.from_config(ctx.obj['config'])
        synthesized = engine.synthesize_scale(seed, name)
    except (TokenEngineError, ValueError) as e:
        _fail(f"Error creating scale: {e}")

    if output_format == 'json':
        click.echo(json.dumps({
            "alias": synthesized.family_alias,
            "seed": synthesized.seed,
            "steps": synthesized.steps,
        }, indent=2))
        return

    table = Table(
        title=f"Scale '{synthesized.family_alias}' from {synthesized.seed}",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Step", style="cyan", justify="right")
    table.add_column("Hex", style="magenta")
    table.add_column("Swatch")
    table.add_column("On-tone", style="dim")

    for step in STEP_LABELS:
        hex_value = synthesized.steps[step]
        table.add_row(step, hex_value, _swatch(hex_value), pick_on_tone(hex_value))

    console = get_console()
    console.print()
    console.print(table)


@main.command()
@click.argument('token_file', type=click.Path(exists=True, dir_okay=False))
@click.argument('family')
@click.argument('step')
@click.argument('hex_color')
@click.option('--no-down', is_flag=True, help='Keep the lighter steps below STEP')
@click.option('--no-up', is_flag=True, help='Keep the darker steps above STEP')
@click.option('--write', is_flag=True, help='Write the result back to TOKEN_FILE')
@click.pass_context
def cascade(ctx, token_file: str, family: str, step: str, hex_color: str,
            no_down: bool, no_up: bool, write: bool):
    """Set STEP of FAMILY to HEX_COLOR and regenerate its neighbours."""
    try:
        engine = TokenEngine.from_config(ctx.obj['config'])
        engine.persistence = FilePersistence(Path(token_file))
        engine.load()
        result = engine.apply_cascade(family, step, hex_color,
                                      cascade_down=not no_down, cascade_up=not no_up)
        if write:
            engine.save()
    except (TokenEngineError, ValueError) as e:
        _fail(f"Error applying cascade: {e}")

    table = Table(
        title=f"{result.family} ({result.scale_key}) after editing {result.edited_step}",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Step", style="cyan", justify="right")
    table.add_column("Hex", style="magenta")
    table.add_column("Swatch")
    table.add_column("Written")

    for step_label in STEP_LABELS:
        hex_value = result.steps[step_label]
        table.add_row(
            step_label,
            hex_value or "-",
            _swatch(hex_value) if hex_value else "",
            "✓" if step_label in result.written else "",
        )

    console = get_console()
    console.print()
    console.print(table)
    if write:
        console.print(f"[green]Saved {token_file}[/green]")


@main.command()
@click.argument('foreground')
@click.argument('background')
@click.option('--min', 'minimum_ratio', type=float, default=None,
              help='Required ratio (default from config)')
@click.option('--opacity', type=click.FloatRange(0.0, 1.0), default=1.0,
              help='Foreground opacity over the background')
@click.pass_context
def contrast(ctx, foreground: str, background: str, minimum_ratio: Optional[float], opacity: float):
    """Show the WCAG contrast ratio of two hex colors."""
    if minimum_ratio is None:
        minimum_ratio = ctx.obj['config'].minimum_contrast_ratio

    try:
        fg_hex = normalize_hex(foreground)
        bg_hex = normalize_hex(background)
        shown = blend_over(fg_hex, bg_hex, opacity) if opacity < 1.0 else fg_hex
        ratio = calculate_contrast_ratio(shown, bg_hex)
    except TokenEngineError as e:
        _fail(f"Error computing contrast: {e}")

    def verdict(passed: bool) -> str:
        return "[green]pass[/green]" if passed else "[red]fail[/red]"

    lines = [
        f"Ratio: [bold]{format_ratio(ratio)}[/bold]",
        f"AA ({AA_RATIO:g}:1): {verdict(meets_wcag_contrast(shown, bg_hex, 'AA'))}",
        f"AAA ({AAA_RATIO:g}:1): {verdict(meets_wcag_contrast(shown, bg_hex, 'AAA'))}",
        f"Required ({minimum_ratio:g}:1): {verdict(ratio >= minimum_ratio)}",
        f"On-tone text for {bg_hex}: {pick_on_tone(bg_hex, minimum_ratio)}",
    ]
    warnings = validate_color_accessibility([(foreground, shown, background, bg_hex)], minimum_ratio)

    console = get_console()
    console.print(Panel(
        "\n".join(lines + [f"[yellow]{warning}[/yellow]" for warning in warnings]),
        title=f"{fg_hex} on {bg_hex}",
        border_style="blue",
    ))


@main.command()
@click.argument('path')
@click.option('--file', '-f', 'files', multiple=True, required=True,
              type=click.Path(exists=True, dir_okay=False),
              help='Token file (repeatable; later files win)')
@click.pass_context
def resolve(ctx, path: str, files):
    """Resolve a token PATH and show its reference chain."""
    try:
        engine = _load_engine(ctx, files)
        result = engine.resolve(path)
    except (TokenEngineError, ValueError) as e:
        _fail(f"Error loading tokens: {e}")

    console = get_console()
    chain = " → ".join(path_to_str(node) for node in result.chain)
    if not result.ok:
        console.print(Panel(
            f"[red]{result.error.value}[/red]: {result.message}\nChain: {chain}",
            title=path,
            border_style="red",
        ))
        sys.exit(1)

    external = ", ".join(engine.names.external_names(result.path))
    console.print(Panel(
        f"Value: [bold]{result.value}[/bold] ({result.kind.value})\n"
        f"Chain: {chain}\n"
        f"Names: {external}\n"
        f"CSS: {engine.names.to_css_var(result.path)}",
        title=path,
        border_style="green",
    ))


@main.command()
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--fix/--no-fix', default=None, help='Rewrite violating foregrounds (default from config)')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write the fixed tokens here')
@click.pass_context
def check(ctx, files, fix: Optional[bool], output: Optional[str]):
    """Check the compliance pairs declared in token FILES."""
    try:
        engine = _load_engine(ctx, files)
        if fix is not None:
            engine.watcher.auto_fix = fix
        results = engine.run_compliance_scan()
        if output:
            save_token_file(Path(output), engine.dump_document())
    except (TokenEngineError, ValueError) as e:
        _fail(f"Error checking tokens: {e}")

    console = get_console()
    if not results:
        console.print("[yellow]No compliance pairs declared[/yellow]")
        return

    table = Table(title="Contrast compliance", show_header=True, header_style="bold")
    table.add_column("Foreground", style="cyan")
    table.add_column("Background", style="cyan")
    table.add_column("Ratio", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Status")
    table.add_column("Fix", style="magenta")

    for result in results:
        style = STATUS_STYLES[result.status]
        table.add_row(
            path_to_str(result.pair.foreground),
            path_to_str(result.pair.background),
            format_ratio(result.ratio),
            f"{result.pair.minimum_ratio:g}",
            f"[{style}]{result.status.value}[/{style}]",
            str(result.applied_fix.value) if result.applied_fix else "",
        )

    console.print()
    console.print(table)
    if output:
        console.print(f"[green]Saved {output}[/green]")

    failing = [result for result in results if not result.compliant]
    if failing:
        console.print(f"[red]{len(failing)} of {len(results)} pairs are not compliant[/red]")
        sys.exit(1)


@main.command()
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--scheme', type=click.Choice([scheme.value for scheme in NamingScheme]),
              default=None, help='Naming scheme for color scales (default from config)')
@click.option('--format', 'output_format', type=click.Choice(['css', 'json']), default='css',
              help='Output format')
@click.pass_context
def export(ctx, files, scheme: Optional[str], output_format: str):
    """Export resolved tokens as CSS custom properties."""
    try:
        engine = _load_engine(ctx, files)
        variables = engine.export_variables(NamingScheme(scheme) if scheme else None)
    except (TokenEngineError, ValueError) as e:
        _fail(f"Error exporting tokens: {e}")

    if output_format == 'json':
        click.echo(json.dumps(variables, indent=2))
        return

    lines = [":root {"]
    lines.extend(f"  {name}: {value};" for name, value in variables.items())
    lines.append("}")
    click.echo("\n".join(lines))


if __name__ == '__main__':
    main()
