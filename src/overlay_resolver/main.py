"""Main entry point for the overlay resolver."""

import logging
from typing import Optional

import click

from .config import Config
from .errors import OverlayResolverError
from .spec_manager import SpecManager

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def print_warnings(warnings: list) -> None:
    """Echo accumulated warnings after output has been written."""
    if not warnings:
        return
    click.echo("")
    click.echo("Warnings:")
    for warning in warnings:
        click.echo(f"  ! {warning}")


@click.command()
@click.option(
    "--config", "-c", "config_path", default=None, help="YAML file with resolver options"
)
@click.option("--base", default=None, help="Base specs directory or single YAML file")
@click.option("--overlays", default=None, help="Overlay directory or single overlay file")
@click.option("--out", default=None, help="Output directory for resolved specs")
@click.option("--env", default=None, help="Target environment for x-environments filtering")
@click.option(
    "--env-file", default=None, help="KEY=VALUE file for ${VAR} placeholder substitution"
)
@click.option("--bundle", is_flag=True, help="Inline all $refs into self-contained specs")
@click.option(
    "--reconcile-examples",
    is_flag=True,
    help="Drop example keys no longer declared by the resolved schemas",
)
@click.option(
    "--no-rpc",
    is_flag=True,
    help="Skip generating RPC endpoints from state machine contracts",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    help="Logging verbosity",
)
def main(
    config_path: Optional[str],
    base: Optional[str],
    overlays: Optional[str],
    out: Optional[str],
    env: Optional[str],
    env_file: Optional[str],
    bundle: bool,
    reconcile_examples: bool,
    no_rpc: bool,
    log_level: str,
) -> None:
    """Resolve overlays, environments and placeholders into a spec tree.

    Without --overlays, --env, --env-file, --bundle or --reconcile-examples,
    base specs are copied to --out unchanged.
    """
    logging.basicConfig(level=getattr(logging, log_level.upper()), format=LOG_FORMAT)

    try:
        config = Config.load(config_path) if config_path else Config()
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    config = config.merged(
        base=base,
        overlays=overlays,
        out=out,
        env=env,
        env_file=env_file,
        bundle=bundle or None,
        reconcile_examples=reconcile_examples or None,
        rpc=False if no_rpc else None,
    )

    spec_manager = SpecManager(config)
    try:
        result = spec_manager.run()
    except OverlayResolverError as e:
        raise click.ClickException(str(e)) from e

    print_warnings(result.warnings)
    click.echo(f"Resolved specs written to {config.out}")


if __name__ == "__main__":
    main()
