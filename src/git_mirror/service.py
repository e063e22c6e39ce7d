import shlex
import shutil
import subprocess
import sys
from pathlib import Path

from rich.console import Console

from .constants import APP_LABEL

console = Console()


def get_executable() -> str:
    """Locates the installed git-mirror executable in the system path.

    Returns:
        str: The absolute path to the 'git-mirror' executable.

    Raises:
        SystemExit: If the executable is not found in the PATH.
    """
    exe = shutil.which("git-mirror")
    if not exe:
        console.print(
            "[bold red]ERROR:[/bold red] Could not find 'git-mirror'. "
            "Ensure the package is installed."
        )
        sys.exit(1)
    return exe


def get_unit_path() -> Path:
    """Resolves the systemd user unit path.

    Raises:
        NotImplementedError: If called on a platform without systemd.
    """
    if sys.platform.startswith("linux"):
        return Path.home() / f".config/systemd/user/{APP_LABEL}.service"

    raise NotImplementedError("Service installation is only supported on Linux.")


def render_unit(executable: str, config_path: Path | None = None) -> str:
    """Builds the systemd unit running the daemon in the foreground.

    `--config` belongs to the top-level parser, so it precedes the subcommand.
    """
    args = [executable]
    if config_path:
        args += ["--config", str(config_path)]
    command = " ".join(shlex.quote(arg) for arg in [*args, "run"])

    return f"""[Unit]
Description=git-mirror repository mirroring daemon
After=network-online.target

[Service]
ExecStart={command}
Restart=on-failure
RestartSec=30

[Install]
WantedBy=default.target
"""


def install(config_path: Path | None = None) -> None:
    """Installs and starts the background daemon as a systemd user service.

    Args:
        config_path (Path | None, optional): A config file to pass to the daemon.
    """
    if not sys.platform.startswith("linux"):
        console.print(
            "\n[bold yellow]NOTE:[/bold yellow] Service installation is only "
            "supported on Linux. Run 'git-mirror run' under your own supervisor."
        )
        return

    unit_path = get_unit_path()
    unit_path.parent.mkdir(parents=True, exist_ok=True)
    unit_path.write_text(render_unit(get_executable(), config_path))

    subprocess.run(["systemctl", "--user", "daemon-reload"], check=True)
    subprocess.run(
        ["systemctl", "--user", "enable", "--now", f"{APP_LABEL}.service"],
        check=True,
    )
    console.print(
        f"[bold green]SUCCESS:[/bold green] git-mirror service active.\n"
        f"Check status: systemctl --user status {APP_LABEL}.service"
    )


def uninstall() -> None:
    """Stops the background daemon and removes its systemd unit."""
    if not sys.platform.startswith("linux"):
        console.print("[yellow]No service installed on this platform.[/yellow]")
        return

    unit_path = get_unit_path()
    subprocess.run(
        ["systemctl", "--user", "disable", "--now", f"{APP_LABEL}.service"],
        stderr=subprocess.DEVNULL,
    )
    if unit_path.exists():
        unit_path.unlink()

    subprocess.run(["systemctl", "--user", "daemon-reload"])
    console.print("[bold green]SUCCESS:[/bold green] Service uninstalled.")
