"""
codeaudit — CLI entrypoint.

Usage:
    codeaudit --help
    codeaudit run .
    codeaudit run . --category security --format json
    codeaudit detect .
    codeaudit tools
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from codeaudit import __version__
from codeaudit.core.observability.logging_config import setup_from_flags

# Exit codes
EXIT_OK = 0
EXIT_BLOCKING = 1
EXIT_ERROR = 2

_SEVERITY_CHOICES = click.Choice(["critical", "high", "medium", "low", "info"], case_sensitive=False)


@click.group()
@click.version_option(version=__version__, prog_name="codeaudit")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool) -> None:
    """codeaudit — multi-tool code audit with heuristic fallback."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug

    setup_from_flags(debug=debug, verbose=verbose, quiet=quiet)


@cli.command()
@click.argument("root", type=click.Path(path_type=Path), default=".")
@click.option("--category", "-C", "categories", multiple=True,
              help="Category to audit (repeatable). Default: all.")
@click.option("--path", "scope_path", default=None, help="Limit the audit to a subdirectory.")
@click.option("--diff", "scope_diff", default=None, help="Limit the audit to files in a git range.")
@click.option("--config", "-c", "config_path", type=click.Path(path_type=Path), default=None,
              help="Path to .codeaudit.yml (default: <root>/.codeaudit.yml).")
@click.option("--format", "-f", "output_format", type=click.Choice(["markdown", "json"]),
              default=None, help="Report format.")
@click.option("--output", "-o", "output_file", type=click.Path(path_type=Path), default=None,
              help="Write the report to a file instead of stdout.")
@click.option("--timeout", "tool_timeout", type=float, default=None,
              help="Per-tool timeout in seconds (default 120).")
@click.option("--deadline", type=float, default=None, help="Whole-run deadline in seconds.")
@click.option("--workers", "-j", type=click.IntRange(min=1), default=None,
              help="Parallel categories (default: min(categories, CPUs)).")
@click.option("--fail-on", type=_SEVERITY_CHOICES, default=None,
              help="Lowest severity that fails the run (default high).")
@click.option("--no-blocking", is_flag=True, help="Always exit 0 when the audit completes.")
@click.pass_context
def run(
    ctx: click.Context,
    root: Path,
    categories: tuple[str, ...],
    scope_path: str | None,
    scope_diff: str | None,
    config_path: Path | None,
    output_format: str | None,
    output_file: Path | None,
    tool_timeout: float | None,
    deadline: float | None,
    workers: int | None,
    fail_on: str | None,
    no_blocking: bool,
) -> None:
    """Audit a project and print the report.

    Exit code 1 when a finding reaches --fail-on, 2 on unreadable root or
    bad configuration.

    Examples:

        codeaudit run .

        codeaudit run . -C security -C dependency-audit --fail-on medium

        codeaudit run . --diff main...HEAD --format json -o audit.json
    """
    from codeaudit.core.config.loader import load_config
    from codeaudit.core.errors import AuditError
    from codeaudit.core.services.rendering import render
    from codeaudit.core.use_cases.audit import run_audit_use_case

    try:
        config = load_config(config_path, root=root if root.is_dir() else None)
        config = config.with_overrides(
            categories=list(categories) or None,
            path=scope_path,
            diff=scope_diff,
            output_format=output_format,
            tool_timeout=tool_timeout,
            deadline=deadline,
            workers=workers,
            fail_on=fail_on,
            blocking=False if no_blocking else None,
        )
        result = run_audit_use_case(root, config=config)
    except AuditError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(EXIT_ERROR)

    text = render(result.report, config.output_format)
    if output_file:
        output_file.write_text(text, encoding="utf-8")
        if not ctx.obj.get("quiet"):
            click.secho(f"📄 Report written to {output_file}", fg="cyan", err=True)
    else:
        click.echo(text, nl=False)

    report = result.report
    if not ctx.obj.get("quiet"):
        meta = report.metadata
        color = "red" if result.exit_code else "green"
        click.secho(
            f"{'✗' if result.exit_code else '✓'} {report.total} finding(s)"
            f" | degraded: {len(meta.degraded_categories)}"
            f" | skipped: {len(meta.skipped_categories)}",
            fg=color, err=True,
        )
    sys.exit(result.exit_code)


@cli.command()
@click.argument("root", type=click.Path(path_type=Path), default=".")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def detect(root: Path, as_json: bool) -> None:
    """Detect languages, manifests and package managers."""
    from codeaudit.core.errors import RootUnreadable
    from codeaudit.core.services.detection import detect_profile

    try:
        profile = detect_profile(root)
    except RootUnreadable as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(EXIT_ERROR)

    if as_json:
        click.echo(json.dumps(profile.to_dict(), indent=2))
        return

    click.secho(f"\n🔍 Project profile: {profile.root}", fg="cyan", bold=True)
    if profile.is_empty:
        click.secho("   No recognized languages or manifests", fg="yellow")
        click.echo()
        return
    click.echo(f"   Languages: {', '.join(sorted(profile.languages)) or '—'}")
    click.echo(f"   Package managers: {', '.join(sorted(profile.package_managers)) or '—'}")
    click.echo("   Manifests:")
    for manifest in sorted(profile.manifests):
        click.echo(f"     • {manifest}")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--config", "-c", "config_path", type=click.Path(path_type=Path), default=None,
              help="Include extra tools from this config file.")
def tools(as_json: bool, config_path: Path | None) -> None:
    """List registered analyzers and whether they are installed."""
    from codeaudit.core.config.loader import load_config
    from codeaudit.core.errors import AuditError
    from codeaudit.core.services.tool_catalog import build_registry

    try:
        config = load_config(config_path, root=Path.cwd())
    except AuditError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(EXIT_ERROR)

    registry = build_registry(config.tools)
    status = registry.tool_status()

    if as_json:
        click.echo(json.dumps(status, indent=2))
        return

    click.secho("\n🧰 Analyzers", fg="cyan", bold=True)
    for category in registry.categories():
        click.secho(f"\n   {category}", fg="white", bold=True)
        for info in (s for s in status.values() if s["category"] == category):
            langs = ", ".join(info["languages"]) or "any"
            if info["available"]:
                click.secho(f"     ✓ {info['name']}", fg="green", nl=False)
            else:
                click.secho(f"     ✗ {info['name']}", fg="red", nl=False)
            click.echo(f"  [{langs}] p{info['priority']}  {info['description']}")
        if registry.heuristic_for(category) is not None:
            click.secho("     ⊘ heuristic", fg="yellow", nl=False)
            click.echo("  (fallback)")
    click.echo()


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
