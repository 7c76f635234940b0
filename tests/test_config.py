import os
import unittest
from datetime import datetime
from pathlib import Path
from tempfile import TemporaryDirectory

from docstruct import config


class ConfigTests(unittest.TestCase):
    def test_default_output_path(self) -> None:
        self.assertEqual(config.DEFAULT_OUTPUT_PATH.name, "structure.json")
        self.assertEqual(config.DEFAULT_OUTPUT_PATH.parent.name, "output")

    def test_base_dirs_paths(self) -> None:
        self.assertEqual(config.OUTPUT_DIR, config.PROJECT_ROOT / "output")
        self.assertEqual(config.LOG_DIR, config.PROJECT_ROOT / "logs")

    def test_build_log_path(self) -> None:
        ts = datetime(2024, 1, 2, 3, 4, 5)
        log_path = config.build_log_path(ts)
        self.assertEqual(log_path.parent, config.LOG_DIR)
        self.assertEqual(log_path.name, "docstruct_20240102_030405.log")

    def test_build_log_path_default_timestamp(self) -> None:
        log_path = config.build_log_path()
        self.assertEqual(log_path.parent, config.LOG_DIR)
        self.assertTrue(log_path.name.startswith(config.LOG_FILE_PREFIX))

    def test_namespace_map_is_read_only(self) -> None:
        self.assertEqual(
            set(config.OOXML_NAMESPACES),
            {"w", "a", "r", "m", "v", "wp", "mc"},
        )
        with self.assertRaises(TypeError):
            config.OOXML_NAMESPACES["x"] = "urn:x"  # type: ignore[index]

    def test_heuristic_thresholds(self) -> None:
        self.assertEqual(config.BASED_ON_MAX_HOPS, 32)
        self.assertEqual(config.MAX_NUMBERING_LEVELS, 9)
        self.assertEqual(config.TOC_EXIT_MIN_ENTRIES, 5)
        self.assertEqual(config.PATTERN_MIN_OCCURRENCES, 2)
        self.assertEqual(config.PATTERN_MAX_EXAMPLES, 3)

    def test_cleanup_logs_removes_old_files(self) -> None:
        original_log_dir = config.LOG_DIR
        with TemporaryDirectory() as tmpdir:
            config.LOG_DIR = Path(tmpdir)
            try:
                old_log = config.LOG_DIR / f"{config.LOG_FILE_PREFIX}_old.log"
                new_log = config.LOG_DIR / f"{config.LOG_FILE_PREFIX}_new.log"
                other = config.LOG_DIR / "unrelated_old.log"
                for path in (old_log, new_log, other):
                    path.write_text("x", encoding="utf-8")
                base_time = datetime(2024, 1, 10, 12, 0, 0)
                old_time = base_time.timestamp() - 6 * 86400
                new_time = base_time.timestamp() - 2 * 86400
                os.utime(old_log, (old_time, old_time))
                os.utime(other, (old_time, old_time))
                os.utime(new_log, (new_time, new_time))

                removed = config.cleanup_logs(retention_days=5, now=base_time)

                self.assertEqual(removed, 1)
                self.assertFalse(old_log.exists())
                self.assertTrue(new_log.exists())
                self.assertTrue(other.exists())
            finally:
                config.LOG_DIR = original_log_dir

    def test_cleanup_logs_disabled(self) -> None:
        self.assertEqual(config.cleanup_logs(retention_days=0), 0)


if __name__ == "__main__":
    unittest.main()
