import logging
import sys
from pathlib import Path
from typing import Optional

import click
import httpx
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .archive_probers import create_http_client
from .cli_config import Dep2BazelConfig, create_sample_config, load_config
from .error_handling import (
    InputError,
    get_error_handler,
    log_filesystem_error,
    setup_error_handling,
)
from .generator import BuildFileGenerator, GenerationResult
from .parsers import parse_dependency_file
from .resolver import RepositoryResolver
from .structured_logging import configure_logging

USAGE = "usage: dep2bazel path/to/Gopkg.lock"

err_console = Console(stderr=True)


def generate_build_file(
    lockfile: str, client: httpx.Client, config: Optional[Dep2BazelConfig] = None
) -> GenerationResult:
    """Parse a lockfile and generate the go_deps() build file for it."""
    config = config or load_config()
    dependencies = parse_dependency_file(lockfile)
    generator = BuildFileGenerator(client, RepositoryResolver(client, config.archive))
    return generator.generate(dependencies, source=lockfile)


def _apply_cli_overrides(
    config: Dep2BazelConfig,
    output: Optional[str],
    fail_on_unresolved: bool,
    timeout: Optional[float],
    quiet: bool,
    verbose: bool,
) -> None:
    if output:
        config.generate.output_file = output
    if fail_on_unresolved:
        config.generate.fail_on_unresolved = True
    if timeout is not None:
        if timeout <= 0:
            raise click.BadParameter("must be positive", param_hint="--timeout")
        config.network.connect_timeout = timeout
        config.network.read_timeout = timeout
    config.generate.quiet = quiet
    config.generate.verbose = verbose

    if verbose:
        config.logging.log_level = "DEBUG"
    elif quiet:
        config.logging.log_level = "ERROR"


def _report_skipped(result: GenerationResult) -> None:
    err_console.print(
        f"⚠️  {len(result.skipped)} of {result.total_dependencies} dependencies "
        "could not be resolved and were skipped:",
        style="yellow",
    )
    for skipped in result.skipped:
        err_console.print(f"  • {skipped.reason}", style="yellow", markup=False)


def _report_error_stats() -> None:
    stats = get_error_handler().get_error_stats()
    if not stats:
        return
    summary = ", ".join(f"{key}={count}" for key, count in sorted(stats.items()))
    err_console.print(f"Recovered errors: {summary}", style="dim", markup=False)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("lockfile", required=False)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True),
    help="Write the generated file here instead of stdout",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to a JSON or YAML configuration file",
)
@click.option(
    "--fail-on-unresolved",
    is_flag=True,
    help="Exit with status 1 if any dependency was skipped",
)
@click.option("--timeout", type=float, help="Per-request network timeout in seconds")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-critical output")
@click.option("--verbose", "-v", is_flag=True, help="Emit debug logs on stderr")
@click.option("--sample-config", is_flag=True, help="Print a sample configuration file")
@click.version_option(__version__, prog_name="dep2bazel")
def cli(
    lockfile: Optional[str],
    output: Optional[str],
    config_path: Optional[str],
    fail_on_unresolved: bool,
    timeout: Optional[float],
    quiet: bool,
    verbose: bool,
    sample_config: bool,
) -> None:
    """
    Generate Bazel go_repository rules from a dep Gopkg.lock file.

    Each dependency is pinned to a checksummed GitHub tarball when one is
    available, and to a VCS commit otherwise.

    Examples:

      dep2bazel Gopkg.lock > go_deps.bzl

      dep2bazel Gopkg.lock -o third_party/go_deps.bzl --fail-on-unresolved
    """
    if sample_config:
        click.echo(create_sample_config())
        return

    if lockfile is None or not lockfile.strip():
        raise click.UsageError(USAGE)

    config = load_config(Path(config_path) if config_path else None)
    _apply_cli_overrides(config, output, fail_on_unresolved, timeout, quiet, verbose)

    configure_logging(config.logging.log_level, config.logging.enable_json)
    setup_error_handling(getattr(logging, config.logging.log_level.upper(), logging.WARNING))

    if not quiet:
        err_console.print(
            Panel(
                f"[bold blue]dep2bazel[/bold blue] v{__version__}",
                border_style="blue",
            )
        )

    try:
        with create_http_client(config.network) as client:
            result = generate_build_file(lockfile.strip(), client, config)
    except InputError as e:
        err_console.print(f"❌ {e}", style="red", markup=False)
        sys.exit(1)
    except KeyboardInterrupt:
        err_console.print("\n⚠️  Interrupted by user", style="yellow")
        sys.exit(130)

    if config.generate.output_file:
        try:
            with open(config.generate.output_file, "w", encoding="utf-8") as f:
                f.write(result.content)
        except OSError as e:
            log_filesystem_error(
                "Cannot write build file",
                "main",
                "cli",
                file_path=config.generate.output_file,
                exception=e,
            )
            err_console.print(
                f"❌ Cannot write {config.generate.output_file}: {e}", style="red", markup=False
            )
            sys.exit(1)
        if not quiet:
            err_console.print(
                f"✅ Wrote {len(result.rendered)} rules to {config.generate.output_file}",
                style="green",
            )
    else:
        click.echo(result.content, nl=False)

    if verbose:
        _report_error_stats()

    if result.has_unresolved:
        if not quiet:
            _report_skipped(result)
        if config.generate.fail_on_unresolved:
            sys.exit(1)


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
