"""Tests for service registration."""

import plistlib
import subprocess

import pytest

from nodoze.service import (
    LaunchAgentService,
    ServiceError,
    SystemdUserService,
    TaskSchedulerService,
    get_service_manager,
    program_arguments,
)


COMMAND = ["/opt/nodoze/bin/nodoze", "run"]


class FakeRunner:
    """Records commands; fails those whose first words match `failing`."""

    def __init__(self, failing=(), missing=False):
        self.failing = [tuple(f) for f in failing]
        self.missing = missing
        self.calls = []

    def __call__(self, args, **kwargs):
        self.calls.append(list(args))
        if self.missing:
            raise FileNotFoundError(args[0])
        failed = any(tuple(args[:len(f)]) == f for f in self.failing)
        return subprocess.CompletedProcess(args, 1 if failed else 0, stdout="",
                                           stderr="boom" if failed else "")


class TestSystemd:
    """Test the systemd user unit."""

    def test_install(self, tmp_path):
        """Test install writes the unit and enables it."""
        runner = FakeRunner()
        service = SystemdUserService(home=tmp_path, runner=runner, command=COMMAND)

        service.install()

        unit = (tmp_path / ".config/systemd/user/nodoze.service").read_text()
        assert "ExecStart=/opt/nodoze/bin/nodoze run" in unit
        assert "After=sound.target" in unit
        assert runner.calls == [
            ["systemctl", "--user", "daemon-reload"],
            ["systemctl", "--user", "enable", "--now", "nodoze"],
        ]

    def test_install_quotes_paths(self, tmp_path):
        """Test paths with spaces are quoted in ExecStart."""
        service = SystemdUserService(home=tmp_path, runner=FakeRunner(),
                                     command=["/home/me/my tools/nodoze", "run"])

        assert "ExecStart='/home/me/my tools/nodoze' run" in service.render()

    def test_enable_failure(self, tmp_path):
        """Test a failing systemctl raises ServiceError."""
        runner = FakeRunner(failing=[["systemctl", "--user", "enable"]])
        service = SystemdUserService(home=tmp_path, runner=runner, command=COMMAND)

        with pytest.raises(ServiceError, match="boom"):
            service.install()

    def test_systemctl_missing(self, tmp_path):
        """Test a missing systemctl binary raises ServiceError."""
        service = SystemdUserService(home=tmp_path, runner=FakeRunner(missing=True),
                                     command=COMMAND)

        with pytest.raises(ServiceError):
            service.install()

    def test_uninstall(self, tmp_path):
        """Test uninstall disables the unit and removes the file."""
        runner = FakeRunner()
        service = SystemdUserService(home=tmp_path, runner=runner, command=COMMAND)
        service.install()
        runner.calls.clear()

        service.uninstall()

        assert not service.unit_path.exists()
        assert runner.calls[0] == ["systemctl", "--user", "disable", "--now", "nodoze"]
        assert runner.calls[-1] == ["systemctl", "--user", "daemon-reload"]

    def test_uninstall_not_installed(self, tmp_path):
        """Test uninstalling a missing unit is harmless."""
        runner = FakeRunner(failing=[["systemctl"]])
        service = SystemdUserService(home=tmp_path, runner=runner, command=COMMAND)

        service.uninstall()


class TestLaunchAgent:
    """Test the macOS LaunchAgent."""

    def test_install(self, tmp_path):
        """Test install writes a valid plist and loads it."""
        runner = FakeRunner()
        service = LaunchAgentService(home=tmp_path, runner=runner, command=COMMAND)

        service.install()

        path = tmp_path / "Library/LaunchAgents/com.nodoze.daemon.plist"
        plist = plistlib.loads(path.read_bytes())
        assert plist["Label"] == "com.nodoze.daemon"
        assert plist["ProgramArguments"] == COMMAND
        assert plist["RunAtLoad"] is True
        assert plist["KeepAlive"] is True
        assert runner.calls == [["launchctl", "load", "-w", str(path)]]

    def test_load_failure(self, tmp_path):
        """Test a failing launchctl raises ServiceError."""
        runner = FakeRunner(failing=[["launchctl", "load"]])
        service = LaunchAgentService(home=tmp_path, runner=runner, command=COMMAND)

        with pytest.raises(ServiceError):
            service.install()

    def test_uninstall(self, tmp_path):
        """Test uninstall unloads and removes the plist."""
        runner = FakeRunner()
        service = LaunchAgentService(home=tmp_path, runner=runner, command=COMMAND)
        service.install()

        service.uninstall()

        assert not service.plist_path.exists()
        assert runner.calls[-1] == ["launchctl", "unload", str(service.plist_path)]

    def test_uninstall_not_installed(self, tmp_path):
        """Test uninstalling without a plist runs nothing."""
        runner = FakeRunner()
        LaunchAgentService(home=tmp_path, runner=runner, command=COMMAND).uninstall()

        assert runner.calls == []


class TestTaskScheduler:
    """Test the Windows scheduled task."""

    def test_install(self):
        """Test install creates and starts the logon task."""
        runner = FakeRunner()
        command = [r"C:\Program Files\nodoze\nodoze.exe", "run"]
        service = TaskSchedulerService(runner=runner, command=command)

        service.install()

        create, run = runner.calls
        assert create[:6] == ["schtasks", "/Create", "/SC", "ONLOGON", "/TN", "NoDoze"]
        assert create[7] == '"C:\\Program Files\\nodoze\\nodoze.exe" run'
        assert run == ["schtasks", "/Run", "/TN", "NoDoze"]

    def test_uninstall_missing_task(self):
        """Test deleting a task that does not exist raises ServiceError."""
        runner = FakeRunner(failing=[["schtasks", "/Delete"]])
        service = TaskSchedulerService(runner=runner, command=COMMAND)

        with pytest.raises(ServiceError, match="may not exist"):
            service.uninstall()


class TestGetServiceManager:
    """Test platform selection."""

    @pytest.mark.parametrize("system,cls", [
        ("Darwin", LaunchAgentService),
        ("Linux", SystemdUserService),
        ("Windows", TaskSchedulerService),
    ])
    def test_known_platforms(self, system, cls, tmp_path):
        """Test each platform gets its service manager."""
        manager = get_service_manager(system, home=tmp_path, command=COMMAND)

        assert isinstance(manager, cls)

    def test_unsupported_platform(self):
        """Test unsupported platforms raise ServiceError."""
        with pytest.raises(ServiceError, match="Plan9"):
            get_service_manager("Plan9")

    def test_program_arguments(self):
        """Test the service command always runs the daemon."""
        assert program_arguments()[-1] == "run"
