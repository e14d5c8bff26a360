"""Bundle Finder CLI using Typer."""

from pathlib import Path

import typer
from dotenv import load_dotenv

from bundle_finder import __version__
from bundle_finder.cli.resolve import resolve_command

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

app = typer.Typer(
    name="bundle-finder",
    help="Bundle Finder - find the store bundles that include an app",
    add_completion=False,
)

app.command("resolve")(resolve_command)


@app.command()
def version() -> None:
    """Show the Bundle Finder version."""
    typer.echo(f"Bundle Finder v{__version__}")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    from bundle_finder.extraction import list_strategies
    from bundle_finder.resolution.settings import get_default_settings

    settings = get_default_settings()

    typer.echo("Bundle Finder Configuration")
    typer.echo("=" * 40)

    # Check .env file
    env_found = False
    for _env_path in _env_paths:
        if _env_path.exists():
            typer.echo(f"  .env file: {_env_path}")
            env_found = True
            break
    if not env_found:
        typer.echo("  .env file: Not found")

    typer.echo(f"  Config file: {settings.config_path or 'Not found (using defaults)'}")
    typer.echo(f"  User agent: {settings.fetch.user_agent}")
    typer.echo(f"  Request timeout: {settings.fetch.request_timeout}s")
    typer.echo(f"  Concurrency: {settings.resolver.concurrency}")
    typer.echo(f"  Extraction strategies: {', '.join(list_strategies())}")

    if settings.fetch.cors_restricted:
        typer.echo("  Proxy fallback: enabled")
        for index, proxy in enumerate(settings.fetch.proxy_chain(), start=1):
            typer.echo(f"    {index}. {proxy}")
    else:
        typer.echo("  Proxy fallback: disabled (direct requests only)")


if __name__ == "__main__":
    app()
