import io
import logging
import tempfile
import unittest
from datetime import datetime
from pathlib import Path


class TestArchive(unittest.TestCase):
    def test_archive_names_and_collisions(self) -> None:
        from symphony_relay.kernel.archive import archive_handoff, list_archives

        with tempfile.TemporaryDirectory() as td:
            src = Path(td) / "HANDOFF.md"
            src.write_text("# one\n", encoding="utf-8")
            archive_dir = Path(td) / "handoffs"
            now = datetime(2026, 1, 31, 14, 5, 9)

            a = archive_handoff(src, archive_dir, now=now)
            b = archive_handoff(src, archive_dir, now=now)
            c = archive_handoff(src, archive_dir, now=now)
            self.assertEqual(a.name, "handoff_20260131_140509.md")
            self.assertEqual(b.name, "handoff_20260131_140509_2.md")
            self.assertEqual(c.name, "handoff_20260131_140509_3.md")
            self.assertEqual(len(list_archives(archive_dir)), 3)
            self.assertTrue(src.exists())
            self.assertEqual(a.read_text(encoding="utf-8"), "# one\n")

    def test_list_archives_missing_dir(self) -> None:
        from symphony_relay.kernel.archive import list_archives

        with tempfile.TemporaryDirectory() as td:
            self.assertEqual(list_archives(Path(td) / "none"), [])


class TestRelayLogging(unittest.TestCase):
    def test_log_line_format(self) -> None:
        from symphony_relay.util.obslog import setup_relay_logging

        with tempfile.TemporaryDirectory() as td:
            log_file = Path(td) / "logs" / "orchestrator.log"
            stream = io.StringIO()
            logger = setup_relay_logging(
                component="test-format", log_file=log_file, stream=stream, force=True
            )
            try:
                logging.getLogger("symphony_relay.handoff").warning("pane %3 busy\nretrying")
                logging.getLogger("symphony_relay.handoff").debug("hidden")
                for h in logger.handlers:
                    h.flush()

                lines = log_file.read_text(encoding="utf-8").splitlines()
                self.assertEqual(len(lines), 1)
                self.assertRegex(lines[0], r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] \[WARN\] pane %3 busy\\nretrying$")
                self.assertIn("[WARN]", stream.getvalue())
            finally:
                for h in list(logger.handlers):
                    logger.removeHandler(h)
                    h.close()

    def test_tail_lines(self) -> None:
        from symphony_relay.util.fs import tail_lines

        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "x.log"
            self.assertEqual(tail_lines(p, 5), [])
            p.write_text("\n".join(str(i) for i in range(10)) + "\n", encoding="utf-8")
            self.assertEqual(tail_lines(p, 3), ["7", "8", "9"])
            self.assertEqual(tail_lines(p, 0), [])


if __name__ == "__main__":
    unittest.main()
