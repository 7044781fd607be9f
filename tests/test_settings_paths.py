import os
import tempfile
import unittest
from pathlib import Path


class TestRelaySettings(unittest.TestCase):
    def test_defaults_when_file_missing(self) -> None:
        from symphony_relay.kernel.settings import RelaySettings, load_settings

        with tempfile.TemporaryDirectory() as td:
            s = load_settings(Path(td) / "settings.yaml")
            self.assertEqual(s, RelaySettings())
            self.assertEqual(s.cli_argv(), ["claude"])
            self.assertEqual(s.cli_argv(bypass=True), ["claude", "--dangerously-skip-permissions"])

    def test_invalid_keys_fall_back(self) -> None:
        from symphony_relay.kernel.settings import load_settings

        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "settings.yaml"
            p.write_text(
                "cli_command: my-claude\n"
                "readiness_timeout_s: -4\n"
                "continuation_prompt: no placeholder here\n"
                "unknown_key: 1\n",
                encoding="utf-8",
            )
            s = load_settings(p)
            self.assertEqual(s.cli_command, "my-claude")
            self.assertEqual(s.readiness_timeout_s, 10.0)
            self.assertIn("{handoff_path}", s.continuation_prompt)

    def test_unreadable_yaml(self) -> None:
        from symphony_relay.kernel.settings import RelaySettings, load_settings

        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "settings.yaml"
            p.write_text("cli_command: [unclosed\n", encoding="utf-8")
            self.assertEqual(load_settings(p), RelaySettings())
            p.write_text("- just\n- a list\n", encoding="utf-8")
            self.assertEqual(load_settings(p), RelaySettings())

    def test_render_prompt(self) -> None:
        from symphony_relay.kernel.settings import RelaySettings

        s = RelaySettings(continuation_prompt="Resume from {handoff_path} please")
        self.assertEqual(s.render_prompt("/w/HANDOFF.md"), "Resume from /w/HANDOFF.md please")


class TestRelayPaths(unittest.TestCase):
    def setUp(self) -> None:
        from symphony_relay.paths import HOME_ENV, reset_paths

        self._old_home = os.environ.get(HOME_ENV)
        reset_paths()

    def tearDown(self) -> None:
        from symphony_relay.paths import HOME_ENV, reset_paths

        if self._old_home is None:
            os.environ.pop(HOME_ENV, None)
        else:
            os.environ[HOME_ENV] = self._old_home
        reset_paths()

    def test_env_override(self) -> None:
        from symphony_relay.paths import HOME_ENV, load_paths, reset_paths

        with tempfile.TemporaryDirectory() as td:
            os.environ[HOME_ENV] = td
            p = load_paths()
            self.assertEqual(p.base_dir, Path(td).resolve())
            self.assertEqual(p.pipe_path, p.base_dir / "orchestrator" / "signals" / "relay.fifo")
            self.assertEqual(p.pid_file, p.base_dir / "orchestrator" / "orchestrator.pid")
            self.assertEqual(p.log_file, p.base_dir / "logs" / "orchestrator.log")
            self.assertIs(load_paths(), p)

            os.environ[HOME_ENV] = str(Path(td) / "other")
            self.assertIs(load_paths(), p)
            reset_paths()
            self.assertEqual(load_paths().base_dir, (Path(td) / "other").resolve())

    def test_project_local_directory(self) -> None:
        from symphony_relay.paths import HOME_ENV, resolve_base_dir

        os.environ.pop(HOME_ENV, None)
        with tempfile.TemporaryDirectory() as td:
            local = Path(td) / ".symphony-relay"
            local.mkdir()
            self.assertNotEqual(resolve_base_dir(Path(td)), local.resolve())
            (local / "config.yaml").write_text("{}\n", encoding="utf-8")
            self.assertEqual(resolve_base_dir(Path(td)), local.resolve())

    def test_base_must_be_directory(self) -> None:
        from symphony_relay.errors import ConfigurationError
        from symphony_relay.paths import HOME_ENV, resolve_base_dir

        with tempfile.TemporaryDirectory() as td:
            f = Path(td) / "file"
            f.write_text("x", encoding="utf-8")
            os.environ[HOME_ENV] = str(f)
            with self.assertRaises(ConfigurationError):
                resolve_base_dir()

    def test_ensure_dirs(self) -> None:
        from symphony_relay.paths import RelayPaths

        with tempfile.TemporaryDirectory() as td:
            p = RelayPaths(base_dir=Path(td) / "relay")
            p.ensure_dirs()
            self.assertTrue(p.signals_dir.is_dir())
            self.assertTrue(p.log_dir.is_dir())
            self.assertTrue(p.archive_dir.is_dir())


if __name__ == "__main__":
    unittest.main()
