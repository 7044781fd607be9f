import io
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path


class TestWrapper(unittest.TestCase):
    def _paths(self, td: str):
        from symphony_relay.paths import RelayPaths

        return RelayPaths(base_dir=Path(td) / "relay")

    def test_fresh_start_execs_cli(self) -> None:
        from symphony_relay.kernel.settings import RelaySettings
        from symphony_relay.paths import HOME_ENV
        from symphony_relay.wrapper import HANDOFF_ENV, run_wrapper

        calls = []
        with tempfile.TemporaryDirectory() as td:
            paths = self._paths(td)
            with redirect_stdout(io.StringIO()):
                rc = run_wrapper(
                    None,
                    paths=paths,
                    settings=RelaySettings(),
                    execvpe=lambda file, argv, env: calls.append((file, list(argv), dict(env))),
                )
            self.assertEqual(rc, 0)
            file, argv, env = calls[0]
            self.assertEqual(file, "claude")
            self.assertEqual(argv, ["claude"])
            self.assertEqual(env[HOME_ENV], str(paths.base_dir))
            self.assertNotIn(HANDOFF_ENV, env)

    def test_resume_passes_prompt(self) -> None:
        from symphony_relay.kernel.settings import RelaySettings
        from symphony_relay.wrapper import HANDOFF_ENV, RESUME_ENV, run_wrapper

        calls = []
        with tempfile.TemporaryDirectory() as td:
            handoff = Path(td) / "HANDOFF.md"
            handoff.write_text("# h\n", encoding="utf-8")
            out = io.StringIO()
            with redirect_stdout(out):
                run_wrapper(
                    handoff,
                    bypass=True,
                    paths=self._paths(td),
                    settings=RelaySettings(),
                    execvpe=lambda file, argv, env: calls.append((list(argv), dict(env))),
                )
            argv, env = calls[0]
            self.assertEqual(argv[:2], ["claude", "--dangerously-skip-permissions"])
            self.assertIn(str(handoff), argv[-1])
            self.assertEqual(env[HANDOFF_ENV], str(handoff))
            self.assertEqual(env[RESUME_ENV], "true")
            self.assertIn("Resuming from Handoff", out.getvalue())

    def test_missing_handoff_starts_fresh(self) -> None:
        from symphony_relay.kernel.settings import RelaySettings
        from symphony_relay.wrapper import run_wrapper

        calls = []
        with tempfile.TemporaryDirectory() as td:
            with redirect_stdout(io.StringIO()), self.assertLogs("symphony_relay.wrapper", level="WARNING"):
                run_wrapper(
                    Path(td) / "gone.md",
                    paths=self._paths(td),
                    settings=RelaySettings(),
                    execvpe=lambda file, argv, env: calls.append(list(argv)),
                )
            self.assertEqual(calls, [["claude"]])

    def test_exec_failure_returns_127(self) -> None:
        from symphony_relay.kernel.settings import RelaySettings
        from symphony_relay.wrapper import run_wrapper

        def boom(file, argv, env):
            raise FileNotFoundError(file)

        with tempfile.TemporaryDirectory() as td:
            with redirect_stdout(io.StringIO()):
                rc = run_wrapper(None, paths=self._paths(td), settings=RelaySettings(), execvpe=boom)
            self.assertEqual(rc, 127)


class TestCliParser(unittest.TestCase):
    def test_subcommands_parse(self) -> None:
        from symphony_relay.cli import build_parser, cmd_daemon, cmd_session, cmd_signal, cmd_wrapper

        parser = build_parser()
        args = parser.parse_args(["session", "--bypass", "-n", "work", "--handoff", "H.md"])
        self.assertIs(args.func, cmd_session)
        self.assertTrue(args.bypass)
        self.assertEqual(args.name, "work")
        self.assertEqual(args.handoff, "H.md")

        args = parser.parse_args(["signal"])
        self.assertIs(args.func, cmd_signal)
        self.assertEqual(args.handoff, "")

        args = parser.parse_args(["wrapper", "--bypass", "/w/H.md"])
        self.assertIs(args.func, cmd_wrapper)
        self.assertEqual(args.handoff, "/w/H.md")

        args = parser.parse_args(["daemon", "start", "--detach"])
        self.assertIs(args.func, cmd_daemon)
        self.assertEqual(args.daemon_cmd, "start")
        self.assertTrue(args.detach)

    def test_version(self) -> None:
        from symphony_relay import __version__
        from symphony_relay.cli import main

        out = io.StringIO()
        with redirect_stdout(out):
            self.assertEqual(main(["version"]), 0)
        self.assertEqual(out.getvalue().strip(), __version__)


if __name__ == "__main__":
    unittest.main()
