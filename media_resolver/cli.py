"""Command-line interface for media-resolver."""

import asyncio
import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Optional

import click

from . import __version__
from .config import Config
from .cookies import CookiePool
from .downloader import Downloader
from .errors import MediaResolverError


class DefaultGroup(click.Group):
    """Click group that defaults to a specified command when no command is given."""

    def __init__(self, *args, **kwargs):
        self.default_command = kwargs.pop("default_command", None)
        super().__init__(*args, **kwargs)

    def parse_args(self, ctx, args):
        # Treat a leading non-command, non-flag argument as the query for the
        # default command
        if (
            args
            and args[0] not in self.commands
            and self.default_command is not None
            and not args[0].startswith("-")
        ):
            args.insert(0, self.default_command)

        return super().parse_args(ctx, args)


def setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )


def load_config(config_path: Optional[str]) -> Config:
    return Config(Path(config_path) if config_path else None)


@click.group(cls=DefaultGroup, default_command="resolve", invoke_without_command=True)
@click.version_option(__version__)
@click.pass_context
def cli(ctx):
    """Media Resolver - turn URLs into playable stream addresses or cached files."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit()


@cli.command()
@click.argument("query")
@click.option("--video", is_flag=True, help="Resolve the video rendition")
@click.option("--all", "all_tracks", is_flag=True, help="Resolve every playlist entry")
@click.option("--config", "config_path", type=click.Path(), help="Config file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def resolve(
    query: str,
    video: bool,
    all_tracks: bool,
    config_path: Optional[str],
    verbose: bool,
):
    """Resolve QUERY and print a playable location.

    Prints a direct stream URL when one is reachable, otherwise the path of
    the downloaded file.
    """
    setup_logging(verbose)
    downloader = Downloader(load_config(config_path))

    async def _resolve():
        tracks = await downloader.get_tracks(query, video)
        if not tracks:
            raise MediaResolverError("No tracks found")
        if not all_tracks:
            tracks = tracks[:1]
        for track in tracks:
            location = await downloader.download(track)
            click.echo(location)

    _run(_resolve())


@cli.command()
@click.argument("query")
@click.option("--video", is_flag=True, help="Request video renditions")
@click.option("--config", "config_path", type=click.Path(), help="Config file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug output")
def info(query: str, video: bool, config_path: Optional[str], verbose: bool):
    """List the tracks QUERY resolves to."""
    setup_logging(verbose)
    downloader = Downloader(load_config(config_path))

    async def _info():
        tracks = await downloader.get_tracks(query, video)
        click.echo(f"✅ Found {len(tracks)} tracks")
        for idx, track in enumerate(tracks, 1):
            live = " 🔴 LIVE" if track.is_live else ""
            minutes, seconds = divmod(track.duration, 60)
            click.echo(f"[{idx}] {track.title} ({minutes}:{seconds:02d}){live}")
            click.echo(f"    id: {track.id}")
            click.echo(f"    url: {track.url}")

    _run(_info())


def _run(coro):
    try:
        asyncio.run(coro)
    except KeyboardInterrupt:
        click.echo("\n⚠️ Cancelled by user", err=True)
        sys.exit(1)
    except MediaResolverError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)


@cli.command("check-setup")
@click.option("--config", "config_path", type=click.Path(), help="Config file")
def check_setup(config_path: Optional[str]):
    """Verify all dependencies are installed."""
    click.echo("🔍 Checking media-resolver dependencies...")
    click.echo()

    config = load_config(config_path)
    all_ok = True

    for label, executable in (
        ("yt-dlp", config.resolver_path),
        ("ffprobe", config.probe_path),
    ):
        version = _tool_version(executable)
        if version:
            click.echo(f"✅ {label}: {version}")
        else:
            click.echo(f"❌ {label}: Not found ({executable})", err=True)
            all_ok = False

    for runtime in ("node", "deno", "bun"):
        if shutil.which(runtime):
            click.echo(f"✅ {runtime}: Installed")
        else:
            click.echo(f"ℹ️ {runtime}: Not installed (optional, used by yt-dlp)")

    import mutagen
    import requests
    import yaml

    click.echo(f"✅ requests: {requests.__version__}")
    click.echo(f"✅ mutagen: {mutagen.version_string}")
    click.echo(f"✅ PyYAML: {yaml.__version__}")
    click.echo(f"✅ click: {click.__version__}")

    if config.config_path:
        click.echo(f"✅ Configuration: {config.config_path}")
    else:
        click.echo("⚠️ Configuration: not found, using defaults")
        click.echo("   Run: media-resolver init")

    cookies = CookiePool(config.cookies_dir).files()
    click.echo(f"🍪 Cookie files: {len(cookies)} in {config.cookies_dir}")

    click.echo()

    if all_ok:
        click.echo("🎉 All required dependencies are installed")
    else:
        click.echo(
            "⚠️ Some dependencies are missing. Please install them first.", err=True
        )
        sys.exit(1)


def _tool_version(executable: str) -> Optional[str]:
    try:
        result = subprocess.run(
            [executable, "-version" if "ffprobe" in executable else "--version"],
            capture_output=True,
            text=True,
            timeout=15,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    lines = result.stdout.strip().splitlines()
    return lines[0] if lines else "Installed"


@cli.command()
def init():
    """Initialize configuration file in ~/.config/media-resolver/."""
    config_dir = Path.home() / ".config" / "media-resolver"
    config_path = config_dir / "config.yaml"

    if config_path.exists():
        click.echo(f"✅ Config already exists: {config_path}")
        return

    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "cookies").mkdir(exist_ok=True)

    example = Path(__file__).parent / "config.example.yaml"
    shutil.copy(example, config_path)

    click.echo(f"✅ Created config: {config_path}")
    click.echo()
    click.echo("🍪 For YouTube, drop Netscape cookie files (*.txt) into:")
    click.echo(f"   {config_dir / 'cookies'}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
