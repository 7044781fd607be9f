from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .bootstrap import SESSION_NAME, SessionBootstrapper, check_dependencies
from .daemon_main import add_daemon_arguments, run_daemon_command
from .emitter import signal_relay_ready
from .errors import ConfigurationError, PaneOperationError
from .kernel.settings import load_settings
from .paths import load_paths
from .util.obslog import setup_relay_logging
from .wrapper import run_wrapper


def _client_logging(console: bool = False) -> None:
    """Client commands log to relay.log; the console stays clean for the AI session."""
    try:
        paths = load_paths()
    except ConfigurationError:
        return
    setup_relay_logging(
        component="client",
        log_file=paths.relay_log_file,
        level=load_settings(paths.settings_path).log_level,
        console=console,
    )


def cmd_session(args: argparse.Namespace) -> int:
    try:
        paths = load_paths(Path(args.dir))
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    settings = load_settings(paths.settings_path)

    deps = check_dependencies(settings.cli_command)
    if not deps["tmux"]:
        print("Error: tmux is not installed", file=sys.stderr)
        print("Install with: brew install tmux (macOS) or apt install tmux (Linux)", file=sys.stderr)
        return 1
    if not deps["claude"]:
        print(f"Error: {settings.cli_command} CLI is not installed", file=sys.stderr)
        return 1

    work_dir = Path(args.dir).expanduser().resolve()
    if not work_dir.is_dir():
        print(f"Error: Directory does not exist: {work_dir}", file=sys.stderr)
        return 1
    handoff = Path(args.handoff).expanduser().absolute() if args.handoff else None

    setup_relay_logging(component="session", log_file=paths.relay_log_file, level=settings.log_level, console=False)
    boot = SessionBootstrapper(paths, settings=settings)
    print("Claude Symphony - Memory Relay Session")
    print("======================================")
    try:
        res = boot.start(work_dir, bypass=bool(args.bypass), handoff=handoff, session_name=args.name)
    except PaneOperationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    if res.action == "cancelled":
        print("Cancelled.")
    return 0


def cmd_signal(args: argparse.Namespace) -> int:
    _client_logging()
    try:
        res = signal_relay_ready(args.handoff or None)
    except ConfigurationError as e:
        print(f"[Symphony Relay] {e}")
        return 1
    if not res.sent:
        print(f"[Symphony Relay] {res.message}")
        return 1
    sig = res.signal
    if sig is not None:
        print("[Symphony Relay] Signal sent")
        print(f"  Handoff: {sig.handoff_path}")
        print(f"  Pane: {sig.pane_id}")
    print(f"[Symphony Relay] {res.message}")
    return 0


def cmd_wrapper(args: argparse.Namespace) -> int:
    _client_logging()
    handoff = Path(args.handoff) if args.handoff else None
    try:
        return run_wrapper(handoff, bypass=bool(args.bypass))
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_daemon(args: argparse.Namespace) -> int:
    return run_daemon_command(args)


def cmd_version(_: argparse.Namespace) -> int:
    print(__version__)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="symphony-relay", description="Session relay for long-running AI CLI work")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_session = sub.add_parser("session", help="Create (or attach to) the relay tmux session")
    p_session.add_argument("-d", "--dir", default=".", help="Working directory (default: current)")
    p_session.add_argument("-n", "--name", default=SESSION_NAME, help=f"Session name (default: {SESSION_NAME})")
    p_session.add_argument("--bypass", action="store_true", help="Start the CLI with permission prompts skipped")
    p_session.add_argument("--handoff", default="", help="Resume from this handoff file")
    p_session.set_defaults(func=cmd_session)

    p_signal = sub.add_parser("signal", help="Tell the orchestrator this session is ready to hand off")
    p_signal.add_argument("handoff", nargs="?", default="", help="Handoff file (default: ./HANDOFF.md)")
    p_signal.set_defaults(func=cmd_signal)

    p_wrapper = sub.add_parser("wrapper", help="Launch the AI CLI with relay support (used inside the session)")
    p_wrapper.add_argument("--bypass", action="store_true", help="Start the CLI with permission prompts skipped")
    p_wrapper.add_argument("handoff", nargs="?", default="", help="Handoff file to resume from")
    p_wrapper.set_defaults(func=cmd_wrapper)

    p_daemon = sub.add_parser("daemon", help="Manage the relay orchestrator")
    add_daemon_arguments(p_daemon)
    p_daemon.set_defaults(func=cmd_daemon)

    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
