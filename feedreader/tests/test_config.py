import json
import os
import tempfile
import unittest
from unittest.mock import mock_open, patch

from feedreader.config import Settings, build_settings, load_config
from feedreader.errors import FileError, UsageError


class TestConfig(unittest.TestCase):

    def test_defaults(self):
        """Test settings without any config source."""
        settings = build_settings({}, environ={})
        self.assertEqual(settings, Settings())
        self.assertEqual(settings.timeout, 5.0)
        self.assertFalse(settings.show_details)

    @patch("builtins.open", new_callable=mock_open, read_data='{"timeout": 2, "show_author": true}')
    def test_load_config_mock(self, mock_file):
        """Test load_config with mocked file."""
        config = load_config("dummy_config.json")
        self.assertEqual(config["timeout"], 2)
        self.assertTrue(config["show_author"])

    def test_load_config_missing(self):
        """Test that a missing config file yields an empty config."""
        with self.assertLogs("feedreader.config", level="WARNING"):
            self.assertEqual(load_config("/nonexistent/config.json"), {})

    @patch("builtins.open", new_callable=mock_open, read_data="{not json")
    def test_load_config_invalid(self, mock_file):
        with self.assertRaises(FileError):
            load_config("bad.json")

    @patch("builtins.open", new_callable=mock_open, read_data="[1, 2]")
    def test_load_config_not_object(self, mock_file):
        with self.assertRaises(FileError):
            load_config("list.json")

    def test_precedence(self):
        """Test defaults < config file < environment < command line."""
        with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as f:
            json.dump(
                {"timeout": 1, "certfile": "/config/ca.pem", "user_agent": "from-config", "show_url": "yes"},
                f,
            )
            path = f.name
        try:
            settings = build_settings(
                {"certfile": "/cli/ca.pem", "show_time": None, "url": "http://a"},
                environ={"FEEDREADER_CERTFILE": "/env/ca.pem", "FEEDREADER_USER_AGENT": "from-env"},
                config_path=path,
            )
        finally:
            os.remove(path)

        self.assertEqual(settings.timeout, 1.0)
        self.assertEqual(settings.certfile, "/cli/ca.pem")
        self.assertEqual(settings.user_agent, "from-env")
        self.assertTrue(settings.show_url)
        self.assertFalse(settings.show_time)
        self.assertTrue(settings.show_details)
        self.assertEqual(settings.url, "http://a")

    def test_config_path_from_environment(self):
        with patch("feedreader.config.load_config", return_value={"check_mime": True}) as mock_load:
            settings = build_settings({}, environ={"FEEDREADER_CONFIG": "/etc/feedreader.json"})
        mock_load.assert_called_once_with("/etc/feedreader.json")
        self.assertTrue(settings.check_mime)

    def test_unknown_option_is_ignored(self):
        with patch("feedreader.config.load_config", return_value={"colour": "red"}):
            with self.assertLogs("feedreader.config", level="WARNING"):
                settings = build_settings({}, environ={}, config_path="c.json")
        self.assertEqual(settings, Settings())

    def test_invalid_timeout(self):
        with self.assertRaises(UsageError):
            build_settings({}, environ={"FEEDREADER_TIMEOUT": "soon"})
        with self.assertRaises(UsageError):
            build_settings({"timeout": 0}, environ={})


if __name__ == "__main__":
    unittest.main()
