from __future__ import annotations

import argparse
import sys
from typing import Optional

from .daemon.server import Orchestrator, RelayStatus, spawn_detached
from .errors import AlreadyRunningError, ChannelUnavailableError, ConfigurationError
from .kernel.settings import load_settings
from .paths import RelayPaths, load_paths
from .util.obslog import setup_relay_logging


def _setup_logging(paths: RelayPaths, *, quiet: bool = False) -> None:
    settings = load_settings(paths.settings_path)
    setup_relay_logging(
        component="orchestrator",
        log_file=paths.log_file,
        level=settings.log_level,
        console=not quiet,
    )


def print_status(st: RelayStatus) -> None:
    print("Memory Relay Orchestrator Status")
    print("================================")
    print(f"Base: {st.base_dir}")
    print("")
    if st.running:
        print(f"Status: Running (PID: {st.pid})")
    elif st.stale:
        print("Status: Stopped (stale PID file)")
    else:
        print("Status: Not running")
    print("")
    print(f"FIFO Path: {st.pipe_path}")
    print(f"FIFO: {'Exists' if st.channel_exists else 'Missing'}")
    print("")
    if st.archives:
        print(f"Archived handoffs: {len(st.archives)} (latest: {st.archives[-1].name})")
    else:
        print("Archived handoffs: 0")
    print("")
    print("Recent logs:")
    if st.recent_logs:
        for ln in st.recent_logs:
            print(f"  {ln}")
    else:
        print("  (no logs)")


def cmd_start(paths: RelayPaths, *, detach: bool = False, quiet: bool = False) -> int:
    orch = Orchestrator(paths)
    if detach:
        live = orch.check_running()
        if live is not None:
            print(f"Orchestrator is already running (PID: {live.pid})")
            return 1
        pid = spawn_detached(paths)
        print(f"Orchestrator started in background (PID: {pid})")
        return 0
    _setup_logging(paths, quiet=quiet)
    try:
        return orch.start()
    except AlreadyRunningError as e:
        print(f"Orchestrator is already running (PID: {e.pid})")
        return 1
    except ChannelUnavailableError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_stop(paths: RelayPaths) -> int:
    _setup_logging(paths, quiet=True)
    print(Orchestrator(paths).stop())
    return 0


def cmd_status(paths: RelayPaths) -> int:
    try:
        print_status(Orchestrator(paths).status())
    except Exception as e:
        print(f"Status unavailable: {e}")
    return 0


def cmd_restart(paths: RelayPaths, *, quiet: bool = False) -> int:
    orch = Orchestrator(paths)
    _setup_logging(paths, quiet=quiet)
    try:
        return orch.restart(report=print)
    except AlreadyRunningError as e:
        print(f"Orchestrator is already running (PID: {e.pid})")
        return 1
    except ChannelUnavailableError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def add_daemon_arguments(parser: argparse.ArgumentParser) -> None:
    sub = parser.add_subparsers(dest="daemon_cmd", required=True)
    p_start = sub.add_parser("start", help="Start the orchestrator (foreground unless --detach)")
    p_start.add_argument("--detach", action="store_true", help="Run in the background")
    p_start.add_argument("--quiet", action="store_true", help="Log to the log file only")
    sub.add_parser("stop", help="Stop the orchestrator")
    sub.add_parser("status", help="Show orchestrator status")
    p_restart = sub.add_parser("restart", help="Stop, then start in the foreground")
    p_restart.add_argument("--quiet", action="store_true", help="Log to the log file only")


def run_daemon_command(args: argparse.Namespace) -> int:
    try:
        paths = load_paths()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 0 if args.daemon_cmd == "status" else 1

    cmd = args.daemon_cmd
    if cmd == "start":
        return cmd_start(paths, detach=bool(args.detach), quiet=bool(args.quiet))
    if cmd == "stop":
        return cmd_stop(paths)
    if cmd == "status":
        return cmd_status(paths)
    if cmd == "restart":
        return cmd_restart(paths, quiet=bool(args.quiet))
    return 2


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="symphony-relayd", description="Memory relay orchestrator daemon")
    add_daemon_arguments(parser)
    args = parser.parse_args(argv)
    return run_daemon_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
