import os
import tempfile
import unittest

from shared.config import DecoderConfig, LoggingConfig, ObjLensConfig, get_config


def _toml(text):
    fd, path = tempfile.mkstemp(suffix=".toml")
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        fh.write(text)
    return path


class TestObjLensConfig(unittest.TestCase):

    def test_defaults(self):
        config = ObjLensConfig()
        self.assertEqual(config.logging.log_level, "WARNING")
        self.assertIsNone(config.logging.log_file)
        self.assertFalse(config.logging.log_json)
        self.assertFalse(config.logging.console_output)
        self.assertEqual(config.decoder.name_encoding, "latin-1")

    def test_load_file(self):
        path = _toml(
            '[logging]\n'
            'log_level = "DEBUG"\n'
            'log_json = true\n'
            '\n'
            '[decoder]\n'
            'name_encoding = "utf-8"\n'
        )
        try:
            config = ObjLensConfig.load(path)
        finally:
            os.unlink(path)
        self.assertEqual(config.logging.log_level, "DEBUG")
        self.assertTrue(config.logging.log_json)
        self.assertEqual(config.decoder.name_encoding, "utf-8")

    def test_unknown_keys_ignored(self):
        path = _toml('[decoder]\nname_encoding = "utf-8"\nstrict = true\n[extra]\nx = 1\n')
        try:
            config = ObjLensConfig.load(path)
        finally:
            os.unlink(path)
        self.assertEqual(config.decoder, DecoderConfig(name_encoding="utf-8"))
        self.assertEqual(config.logging, LoggingConfig())

    def test_explicit_missing_path(self):
        with self.assertRaises(FileNotFoundError):
            ObjLensConfig.load("/nonexistent/objlens.toml")

    def test_to_dict(self):
        data = ObjLensConfig().to_dict()
        self.assertEqual(data["decoder"], {"name_encoding": "latin-1"})
        self.assertEqual(data["logging"]["log_level"], "WARNING")

    def test_get_config_reload(self):
        path = _toml('[logging]\nlog_level = "ERROR"\n')
        try:
            config = get_config(path)
            self.assertEqual(config.logging.log_level, "ERROR")
            self.assertIs(get_config(), config)
        finally:
            os.unlink(path)
            del get_config._cached


if __name__ == "__main__":
    unittest.main()
