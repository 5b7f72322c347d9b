"""Command-line interface for nodoze.

Cross-platform: Windows, macOS, Linux and WSL2.
"""

import argparse
import logging
import os
import platform
import sys
from typing import Optional

from .audio import devices
from .audio.errors import AudioError
from .config import Config, load_config
from .service import ServiceError, get_service_manager

log = logging.getLogger("nodoze")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger for console output (stderr, journald-friendly)."""
    level = level or os.environ.get("NODOZE_LOG_LEVEL", "info")
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )


def get_platform_info() -> dict:
    """Get platform information for audio support."""
    info = {
        'system': platform.system(),
        'release': platform.release(),
        'is_wsl': False,
        'is_wsl2': False,
        'audio_available': devices.SOUNDDEVICE_AVAILABLE,
        'audio_error': devices.SOUNDDEVICE_ERROR,
    }

    if info['system'] == 'Linux':
        try:
            with open('/proc/version', 'r') as f:
                version = f.read().lower()
        except OSError:
            version = ''
        if 'microsoft' in version or 'wsl' in version:
            info['is_wsl'] = True
            info['is_wsl2'] = 'wsl2' in version

    return info


def print_audio_setup_help(platform_info: dict) -> None:
    """Print platform-specific hints for getting audio output working."""
    if platform_info['is_wsl']:
        print("""
WSL AUDIO SETUP:
===============
WSL has no audio hardware of its own. On Windows 11, WSLg forwards
PulseAudio output automatically. Otherwise run nodoze natively on
Windows, which is where the speakers are anyway.
""")

    elif platform_info['system'] == 'Linux':
        print("""
LINUX AUDIO SETUP:
=================
Install the PortAudio runtime:

  Ubuntu/Debian:  sudo apt install libportaudio2
  Fedora:         sudo dnf install portaudio
  Arch:           sudo pacman -S portaudio

Then reinstall sounddevice:
    pip install --force-reinstall sounddevice
""")

    elif platform_info['system'] == 'Darwin':
        print("""
MACOS AUDIO SETUP:
=================
sounddevice ships its own PortAudio on macOS. If it still fails:
    brew install portaudio
    pip install --force-reinstall sounddevice
""")

    elif platform_info['system'] == 'Windows':
        print("""
WINDOWS AUDIO SETUP:
===================
sounddevice should work out of the box on Windows.

If you see errors:
1. Reinstall sounddevice:
   pip install --force-reinstall sounddevice
2. Check Windows Sound settings for the default output device
""")


def print_devices() -> int:
    """Print output devices. Returns the process exit status."""
    from .audio.playback import list_devices

    try:
        names = list_devices()
    except AudioError as e:
        log.error("%s", e)
        print_audio_setup_help(get_platform_info())
        return 1

    if not names:
        print("No output devices found!")
        return 0

    print("Available output devices:")
    for name in names:
        print(f"  {name}")
    return 0


def print_config(config: Config, path: Optional[str] = None) -> None:
    """Print the active configuration."""
    print("Active configuration:")
    print(f"  Frequency:     {config.frequency} Hz")
    print(f"  Duration:      {config.duration} s")
    print(f"  Interval:      {config.interval} s ({config.interval / 60:.1f} min)")
    print(f"  Fade duration: {config.fade_duration} s")
    print(f"  Volume:        {config.volume * 100:.0f}%")
    print(f"  Device:        {config.device or '(system default)'}")
    if config.sample_format:
        print(f"  Sample format: {config.sample_format}")

    config_path = path or os.environ.get("NODOZE_CONFIG") or str(Config.config_path())
    found = "(found)" if os.path.exists(config_path) else "(not found, using defaults)"
    print(f"  Config file:   {config_path} {found}")


def play_once(config: Config) -> int:
    """Play a single tone. Returns the process exit status."""
    from .audio.playback import play_tone

    try:
        play_tone(config)
    except AudioError as e:
        log.error("%s", e)
        return 1
    return 0


def run_daemon(config: Config) -> int:
    """Run the scheduler until interrupted."""
    from .scheduler import run_scheduler

    try:
        run_scheduler(config)
    except KeyboardInterrupt:
        log.info("Stopped")
    return 0


def manage_service(action: str) -> int:
    """Install or uninstall the background service."""
    try:
        manager = get_service_manager()
        if action == 'install':
            manager.install()
            print(f"Service installed and started: {manager.describe()}")
        else:
            manager.uninstall()
            print(f"Service removed: {manager.describe()}")
    except ServiceError as e:
        log.error("%s", e)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='nodoze',
        description='Keep your speakers awake by playing a quiet tone periodically',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nodoze                   Run the daemon (same as 'nodoze run')
  nodoze once              Play one tone and exit
  nodoze list-devices      List audio output devices
  nodoze -c my.toml config Show the configuration that would be used
  nodoze install           Start nodoze automatically at login
        """
    )
    parser.add_argument('-c', '--config',
                        help='Path to config file (default: ~/.config/nodoze/config.toml)')
    parser.add_argument('--log-level',
                        help='Logging level (default: info, or NODOZE_LOG_LEVEL)')

    subparsers = parser.add_subparsers(dest='command', help='Command')
    subparsers.add_parser('run', help='Run the daemon (plays tone at configured interval)')
    subparsers.add_parser('once', help='Play the tone once and exit')
    subparsers.add_parser('list-devices', aliases=['devices'],
                          help='List available audio output devices')
    subparsers.add_parser('config', help='Show active configuration')
    subparsers.add_parser('install', help='Install as a background service')
    subparsers.add_parser('uninstall', help='Remove the background service')
    subparsers.add_parser('info', help='Show platform and audio info')

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the nodoze command."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    command = args.command or 'run'

    if command in ('list-devices', 'devices'):
        return print_devices()
    if command in ('install', 'uninstall'):
        return manage_service(command)
    if command == 'info':
        info = get_platform_info()
        for key, value in info.items():
            print(f"{key}: {value}")
        if not info['audio_available']:
            print_audio_setup_help(info)
        return 0

    config = load_config(args.config)

    if command == 'config':
        print_config(config, args.config)
        return 0
    if command == 'once':
        return play_once(config)
    return run_daemon(config)


if __name__ == '__main__':
    sys.exit(main())
