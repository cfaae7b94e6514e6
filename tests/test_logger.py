import json
import logging
import os
import shutil
import tempfile
import unittest

from objlens.core.loader import ObjectFileLoader
from shared.config import LoggingConfig, ObjLensConfig
from shared.logger import ObjLensLogger


class TestObjLensLogger(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.log_path = os.path.join(self.tmpdir, "logs", "objlens.log")

    def tearDown(self):
        # Drop file handlers so the directory can be removed.
        ObjLensLogger("test")
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def _records(self):
        for handler in logging.getLogger("objlens.test").handlers:
            handler.flush()
        with open(self.log_path, encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]

    def test_json_records_carry_context(self):
        log = ObjLensLogger("test", log_level="DEBUG", log_file=self.log_path, json_logs=True)
        with log.operation("detect"):
            log.info("Detected %s file", "ELF", sections=6)
        log.warning("outside")

        first, second = self._records()
        self.assertEqual(first["message"], "Detected ELF file")
        self.assertEqual(first["level"], "INFO")
        self.assertEqual(first["logger"], "objlens.test")
        self.assertEqual(first["component"], "test")
        self.assertEqual(first["operation"], "detect")
        self.assertEqual(first["extra"], {"sections": 6})
        self.assertNotIn("operation", second)

    def test_level_filtering(self):
        log = ObjLensLogger("test", log_level="WARNING", log_file=self.log_path, json_logs=True)
        log.debug("hidden")
        log.info("hidden")
        log.error("shown")
        self.assertEqual([r["message"] for r in self._records()], ["shown"])

    def test_timed_logs_elapsed(self):
        log = ObjLensLogger("test", log_level="DEBUG", log_file=self.log_path, json_logs=True)
        with log.timed("load app.out") as timer:
            pass
        self.assertGreaterEqual(timer.elapsed, 0.0)
        (record,) = self._records()
        self.assertTrue(record["message"].startswith("load app.out took "))

    def test_handlers_replaced_on_reinit(self):
        ObjLensLogger("test", log_file=self.log_path)
        log = ObjLensLogger("test", log_file=self.log_path)
        self.assertEqual(len(log.underlying.handlers), 1)
        self.assertFalse(log.underlying.propagate)

    def test_quiet_logger_propagates(self):
        log = ObjLensLogger("test")
        self.assertEqual(log.underlying.handlers, [])
        self.assertTrue(log.underlying.propagate)
        self.assertEqual(log.component, "test")

    def test_quiet_logger_keeps_host_settings(self):
        stdlib_logger = logging.getLogger("objlens.test")
        host_handler = logging.NullHandler()
        stdlib_logger.setLevel(logging.DEBUG)
        stdlib_logger.addHandler(host_handler)
        try:
            ObjLensLogger("test", log_level="ERROR")
            self.assertEqual(stdlib_logger.level, logging.DEBUG)
            self.assertIn(host_handler, stdlib_logger.handlers)

            # Our own file handler comes and goes; the host's stays.
            ObjLensLogger("test", log_file=self.log_path)
            ObjLensLogger("test")
            self.assertEqual(stdlib_logger.handlers, [host_handler])
            self.assertTrue(stdlib_logger.propagate)
        finally:
            stdlib_logger.removeHandler(host_handler)
            stdlib_logger.setLevel(logging.NOTSET)

    def test_default_loader_leaves_level_alone(self):
        stdlib_logger = logging.getLogger("objlens.loader")
        stdlib_logger.setLevel(logging.DEBUG)
        try:
            ObjectFileLoader(config=ObjLensConfig())
            self.assertEqual(stdlib_logger.level, logging.DEBUG)
        finally:
            stdlib_logger.setLevel(logging.NOTSET)

    def test_from_config(self):
        config = ObjLensConfig(
            logging=LoggingConfig(log_level="INFO", log_file=self.log_path, log_json=True)
        )
        log = ObjLensLogger.from_config("test", config)
        self.assertEqual(log.underlying.level, logging.INFO)
        log.info("configured")
        self.assertEqual(self._records()[0]["message"], "configured")


if __name__ == "__main__":
    unittest.main()
