import io
import tempfile
import unittest
from pathlib import Path


class FakeTmux:
    def __init__(self, sessions=()) -> None:
        self.sessions = set(sessions)
        self.ops = []

    def has_session(self, name: str) -> bool:
        return name in self.sessions

    def create_session(self, name: str, work_dir: Path):
        self.sessions.add(name)
        self.ops.append(("create", name, str(work_dir)))
        return "%10", "%11"

    def kill_session(self, name: str) -> None:
        self.sessions.discard(name)
        self.ops.append(("kill", name))

    def send_keys(self, pane_id: str, text: str) -> None:
        self.ops.append(("keys", pane_id, text))

    def select_pane(self, pane_id: str) -> None:
        self.ops.append(("select", pane_id))

    def attach_session(self, name: str) -> int:
        self.ops.append(("attach", name))
        return 0


class TestSessionBootstrapper(unittest.TestCase):
    def _boot(self, td: str, tmux: FakeTmux, choice=None):
        from symphony_relay.bootstrap import SessionBootstrapper
        from symphony_relay.kernel.settings import RelaySettings
        from symphony_relay.paths import RelayPaths

        def choose(name):
            if choice is None:
                raise AssertionError("no prompt expected")
            return choice

        return SessionBootstrapper(
            RelayPaths(base_dir=Path(td) / "relay"),
            panes=tmux,
            settings=RelaySettings(),
            choose=choose,
            sleep=lambda s: None,
            python="/usr/bin/python3",
        )

    def test_fresh_session(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            tmux = FakeTmux()
            res = self._boot(td, tmux).start(Path(td), handoff=Path("/w/HANDOFF.md"))
            self.assertEqual(res.action, "created")
            self.assertEqual(res.session, "symphony-session")
            self.assertEqual((res.orchestrator_pane, res.cli_pane), ("%10", "%11"))

            keys = [op for op in tmux.ops if op[0] == "keys"]
            self.assertEqual(keys[0][1], "%10")
            self.assertIn("symphony_relay.daemon_main start", keys[0][2])
            self.assertIn("SYMPHONY_RELAY_HOME=", keys[0][2])
            self.assertEqual(keys[1][1], "%11")
            self.assertIn("symphony_relay.cli wrapper /w/HANDOFF.md", keys[1][2])
            self.assertEqual(tmux.ops[-2:], [("select", "%11"), ("attach", "symphony-session")])

    def test_parallel_session_gets_suffix(self) -> None:
        from symphony_relay.bootstrap import SessionChoice

        with tempfile.TemporaryDirectory() as td:
            tmux = FakeTmux({"symphony-session"})
            res = self._boot(td, tmux, SessionChoice.PARALLEL).start(Path(td))
            self.assertEqual(res.session, "symphony-session-2")
            self.assertEqual(res.action, "created")
            self.assertIn("symphony-session", tmux.sessions)
            self.assertEqual(tmux.ops[0][:2], ("create", "symphony-session-2"))
            self.assertEqual(tmux.ops[-1], ("attach", "symphony-session-2"))

    def test_attach_and_cancel_create_nothing(self) -> None:
        from symphony_relay.bootstrap import SessionChoice

        with tempfile.TemporaryDirectory() as td:
            tmux = FakeTmux({"symphony-session"})
            res = self._boot(td, tmux, SessionChoice.ATTACH).start(Path(td))
            self.assertEqual(res.action, "attached")
            self.assertEqual(tmux.ops, [("attach", "symphony-session")])

            tmux = FakeTmux({"symphony-session"})
            res = self._boot(td, tmux, SessionChoice.CANCEL).start(Path(td))
            self.assertEqual(res.action, "cancelled")
            self.assertIsNone(res.session)
            self.assertEqual(tmux.ops, [])

    def test_recreate_kills_first(self) -> None:
        from symphony_relay.bootstrap import SessionChoice

        with tempfile.TemporaryDirectory() as td:
            tmux = FakeTmux({"symphony-session"})
            res = self._boot(td, tmux, SessionChoice.RECREATE).start(Path(td), bypass=True, attach=False)
            self.assertEqual(res.action, "recreated")
            self.assertEqual(tmux.ops[0], ("kill", "symphony-session"))
            self.assertEqual(tmux.ops[1][0], "create")
            wrapper = [op for op in tmux.ops if op[0] == "keys"][1][2]
            self.assertIn("wrapper --bypass", wrapper)


class TestBootstrapHelpers(unittest.TestCase):
    def test_find_free_session_name(self) -> None:
        from symphony_relay.bootstrap import find_free_session_name

        taken = {"s", "s-2", "s-3"}
        self.assertEqual(find_free_session_name("s", taken.__contains__), "s-4")
        self.assertEqual(find_free_session_name("x", taken.__contains__), "x")

    def test_prompt_session_choice(self) -> None:
        from symphony_relay.bootstrap import SessionChoice, prompt_session_choice

        out = io.StringIO()
        self.assertEqual(prompt_session_choice("s", input_fn=lambda p: "2", out=out), SessionChoice.PARALLEL)
        self.assertIn("already exists", out.getvalue())
        self.assertEqual(prompt_session_choice("s", input_fn=lambda p: "9", out=out), SessionChoice.CANCEL)

        def eof(prompt):
            raise EOFError

        self.assertEqual(prompt_session_choice("s", input_fn=eof, out=out), SessionChoice.CANCEL)

    def test_check_dependencies(self) -> None:
        from symphony_relay.bootstrap import check_dependencies

        found = {"tmux": "/usr/bin/tmux"}
        deps = check_dependencies("claude", which=found.get)
        self.assertEqual(deps, {"tmux": True, "claude": False})


if __name__ == "__main__":
    unittest.main()
