"""Register nodoze as a per-user background service.

- macOS:   LaunchAgent (~/Library/LaunchAgents/com.nodoze.daemon.plist)
- Linux:   systemd user unit (~/.config/systemd/user/nodoze.service)
- Windows: Task Scheduler task "NoDoze" started at logon
"""

import logging
import platform
import plistlib
import shlex
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional

log = logging.getLogger(__name__)

LAUNCHD_LABEL = "com.nodoze.daemon"
SYSTEMD_SERVICE = "nodoze"
WINDOWS_TASK = "NoDoze"

Runner = Callable[..., subprocess.CompletedProcess]


class ServiceError(RuntimeError):
    """Service installation or removal failed."""


def program_arguments() -> list[str]:
    """Command line that starts the daemon."""
    exe = shutil.which("nodoze")
    if exe:
        return [exe, "run"]
    return [sys.executable, "-m", "nodoze.cli", "run"]


class ServiceManager(ABC):
    """Install/uninstall capability for one platform's service manager."""

    def __init__(
        self,
        home: Optional[Path] = None,
        runner: Runner = subprocess.run,
        command: Optional[list[str]] = None,
    ):
        self.home = Path(home) if home is not None else Path.home()
        self._runner = runner
        self.command = command or program_arguments()

    def _run(self, args: list[str], check: bool = True) -> bool:
        """Run a service manager command.

        Returns:
            True if the command exited with status 0

        Raises:
            ServiceError: If the command fails and `check` is set
        """
        try:
            result = self._runner(args, capture_output=True, text=True)
        except OSError as e:
            if check:
                raise ServiceError(f"Failed to run {args[0]}: {e}") from e
            log.debug("Ignoring failure of %s: %s", args[0], e)
            return False

        if result.returncode != 0:
            if check:
                detail = (result.stderr or "").strip()
                raise ServiceError(f"{' '.join(args[:2])} failed: {detail or result.returncode}")
            return False
        return True

    @abstractmethod
    def describe(self) -> str:
        """Where the service is registered."""
        ...

    @abstractmethod
    def install(self) -> None:
        """Register and start the service."""
        ...

    @abstractmethod
    def uninstall(self) -> None:
        """Stop and unregister the service. No-op if not installed."""
        ...


class LaunchAgentService(ServiceManager):
    """macOS LaunchAgent."""

    @property
    def plist_path(self) -> Path:
        return self.home / "Library" / "LaunchAgents" / f"{LAUNCHD_LABEL}.plist"

    def describe(self) -> str:
        return str(self.plist_path)

    def render(self) -> bytes:
        return plistlib.dumps({
            "Label": LAUNCHD_LABEL,
            "ProgramArguments": self.command,
            "RunAtLoad": True,
            "KeepAlive": True,
            "StandardErrorPath": "/tmp/nodoze.err",
            "StandardOutPath": "/tmp/nodoze.out",
        })

    def install(self) -> None:
        path = self.plist_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(self.render())
        except OSError as e:
            raise ServiceError(f"Failed to write plist: {e}") from e

        self._run(["launchctl", "load", "-w", str(path)])
        log.info("Service installed and started: %s", path)

    def uninstall(self) -> None:
        path = self.plist_path
        if not path.exists():
            log.info("Service not installed (plist not found)")
            return

        self._run(["launchctl", "unload", str(path)], check=False)
        try:
            path.unlink()
        except OSError as e:
            raise ServiceError(f"Failed to remove plist: {e}") from e
        log.info("Service uninstalled: %s", path)


SYSTEMD_UNIT = """\
[Unit]
Description=NoDoze - Keep speakers alive with inaudible tones
After=sound.target

[Service]
Type=simple
ExecStart={exec_start}
Restart=on-failure
RestartSec=10

[Install]
WantedBy=default.target
"""


class SystemdUserService(ServiceManager):
    """Linux systemd --user unit."""

    @property
    def unit_path(self) -> Path:
        return self.home / ".config" / "systemd" / "user" / f"{SYSTEMD_SERVICE}.service"

    def describe(self) -> str:
        return str(self.unit_path)

    def render(self) -> str:
        return SYSTEMD_UNIT.format(exec_start=shlex.join(self.command))

    def install(self) -> None:
        path = self.unit_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.render())
        except OSError as e:
            raise ServiceError(f"Failed to write unit file: {e}") from e

        self._run(["systemctl", "--user", "daemon-reload"])
        self._run(["systemctl", "--user", "enable", "--now", SYSTEMD_SERVICE])
        log.info("Service installed and started: %s", path)

    def uninstall(self) -> None:
        self._run(["systemctl", "--user", "disable", "--now", SYSTEMD_SERVICE], check=False)

        path = self.unit_path
        if not path.exists():
            log.info("Service not installed (unit file not found)")
            return

        try:
            path.unlink()
        except OSError as e:
            raise ServiceError(f"Failed to remove unit file: {e}") from e
        self._run(["systemctl", "--user", "daemon-reload"], check=False)
        log.info("Service uninstalled: %s", path)


class TaskSchedulerService(ServiceManager):
    """Windows scheduled task run at logon."""

    def describe(self) -> str:
        return f"Task Scheduler: {WINDOWS_TASK}"

    def install(self) -> None:
        self._run([
            "schtasks", "/Create",
            "/SC", "ONLOGON",
            "/TN", WINDOWS_TASK,
            "/TR", subprocess.list2cmdline(self.command),
            "/F",
        ])
        # Start it now as well as at next logon
        self._run(["schtasks", "/Run", "/TN", WINDOWS_TASK], check=False)
        log.info("Service installed as scheduled task: %s", WINDOWS_TASK)

    def uninstall(self) -> None:
        self._run(["schtasks", "/End", "/TN", WINDOWS_TASK], check=False)
        try:
            self._run(["schtasks", "/Delete", "/TN", WINDOWS_TASK, "/F"])
        except ServiceError as e:
            raise ServiceError(f"{e} (task may not exist)") from e
        log.info("Service uninstalled: %s", WINDOWS_TASK)


_MANAGERS = {
    "Darwin": LaunchAgentService,
    "Linux": SystemdUserService,
    "Windows": TaskSchedulerService,
}


def get_service_manager(system: Optional[str] = None, **kwargs) -> ServiceManager:
    """Return the service manager for this platform.

    Raises:
        ServiceError: If the platform has no supported service manager
    """
    system = system or platform.system()
    try:
        cls = _MANAGERS[system]
    except KeyError:
        raise ServiceError(f"Service installation not supported on {system}") from None
    return cls(**kwargs)
