import argparse
import logging
import subprocess
import sys
import tomllib
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import daemon, service
from .config import Config
from .constants import APP_NAME, CONFIG_FILE, LOG_FILE
from .exceptions import GitError
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)


def load_config(path: Path | None) -> Config:
    """Loads configuration, exiting with a readable error on a syntax error."""
    try:
        return Config.load(path)
    except tomllib.TOMLDecodeError as e:
        err_console.print(
            f"[bold red]FATAL:[/bold red] Config syntax "
            f"error in {path or CONFIG_FILE}:\n   {escape(str(e))}"
        )
        sys.exit(1)


def _format_interval(interval: int | None) -> str:
    if interval is None:
        return "manual"
    if interval % 3600 == 0:
        return f"{interval // 3600}h"
    if interval % 60 == 0:
        return f"{interval // 60}m"
    return f"{interval}s"


def _local_head(path: Path) -> str:
    """Returns the short HEAD id of a working copy, or a status placeholder."""
    if not path.exists():
        return "[yellow]not cloned[/yellow]"
    try:
        head = GitRepo(path).head_id()
    except GitError as e:
        logger.debug(f"Failed to open {path}: {e}")
        return "[bold red]error[/bold red]"
    return head[:10] if head else "[dim]empty[/dim]"


def list_repos(config: Config) -> None:
    """Lists all configured repositories and the state of their working copies."""
    if not config.repos:
        console.print("[yellow]No repositories configured.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="cyan")
    table.add_column("Path")
    table.add_column("Remote", style="dim")
    table.add_column("Ref")
    table.add_column("Interval", justify="right")
    table.add_column("HEAD", justify="right")

    for name, repo in config.repos.items():
        display_path = str(repo.path).replace(str(Path.home()), "~")
        table.add_row(
            name,
            display_path,
            repo.remote_url,
            repo.remote_ref,
            _format_interval(repo.interval),
            _local_head(repo.path),
        )

    console.print(table)


def sync_now(config: Config, names: list[str]) -> int:
    """Runs one synchronization pass and prints the outcome per repository.

    Returns:
        int: The process exit code (1 if any repository failed).
    """
    with console.status("Synchronizing repositories...", spinner="dots"):
        results = daemon.run_once(config, names or None)

    if not results:
        console.print("[yellow]Nothing to synchronize.[/yellow]")
        return 0

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Repository", style="cyan")
    table.add_column("Result")

    failed = False
    for name, result in results.items():
        if result is True:
            table.add_row(name, "[green]Updated[/green]")
        elif result is False:
            table.add_row(name, "[dim]Up to date[/dim]")
        else:
            failed = True
            label = f"{result.category.upper()} ERROR:"
            table.add_row(name, f"[bold red]{label}[/bold red] {result}")

    console.print(table)
    return 1 if failed else 0


def tail_log() -> None:
    """Follows the daemon log file in real-time."""
    if not LOG_FILE.exists():
        console.print(f"[red]No log file found yet at {LOG_FILE}.[/red]")
        return

    console.print(f"Tailing [bold cyan]{LOG_FILE}[/bold cyan] (Ctrl+C to stop)...")
    try:
        subprocess.run(["tail", "-n", "1000", "-f", str(LOG_FILE)])
    except KeyboardInterrupt:
        console.print("\nStopped.", style="dim")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Mirror remote git repositories into local working copies.",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to the configuration file",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Run the mirroring daemon (default)")
    now_parser = subparsers.add_parser(
        "now", help="Synchronize repositories immediately (one-off)"
    )
    now_parser.add_argument(
        "names", nargs="*", help="Repositories to synchronize (default: all)"
    )
    subparsers.add_parser("list", help="List configured repositories")
    subparsers.add_parser("log", help="Tail the daemon log file")
    subparsers.add_parser("install-service", help="Install the background daemon")
    subparsers.add_parser("uninstall-service", help="Uninstall the background daemon")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the git-mirror CLI."""
    args = build_parser().parse_args(argv)

    if args.command == "log":
        tail_log()
        return
    elif args.command == "install-service":
        with console.status("Installing background service...", spinner="dots"):
            service.install(
                config_path=args.config.resolve() if args.config else None
            )
        return
    elif args.command == "uninstall-service":
        with console.status("Uninstalling service...", spinner="dots"):
            service.uninstall()
        return

    config = load_config(args.config)

    if args.command == "list":
        list_repos(config)
        return
    elif args.command == "now":
        daemon.setup_logging(interactive=True)
        sys.exit(sync_now(config, args.names))

    # Default Action (if no subcommand is run)
    daemon.main(config)


if __name__ == "__main__":
    main()
