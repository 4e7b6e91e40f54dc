import os
import sys
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from pymongo.errors import ServerSelectionTimeoutError

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import set_env_vars
from backend.config import Settings
from backend.mongo import MongoConnection


class TestSettings(unittest.TestCase):
    @patch.dict(os.environ, {"MONGODB_URI": "mongodb://db", "MONGO_DB": "prep", "JWT_SECRET": "s"}, clear=True)
    def test_from_env_defaults(self):
        settings = Settings.from_env()
        self.assertEqual(settings.mongo_uri, "mongodb://db")
        self.assertEqual(settings.jwt_expires_days, 30)
        self.assertIsNone(settings.gemini_api_key)
        self.assertIsNone(settings.gemini_timeout_s)
        self.assertEqual(settings.max_profile_image_bytes, 5 * 1024 * 1024)

    @patch.dict(
        os.environ,
        {
            "MONGO_URI": "mongodb://db",
            "MONGO_DB": "prep",
            "JWT_SECRET": "s",
            "GOOGLE_API_KEY": "g",
            "GEMINI_TIMEOUT_S": "12.5",
            "PORT": "9000",
        },
        clear=True,
    )
    def test_from_env_overrides(self):
        settings = Settings.from_env()
        self.assertEqual(settings.gemini_api_key, "g")
        self.assertEqual(settings.gemini_timeout_s, 12.5)
        self.assertEqual(settings.port, 9000)

    @patch.dict(os.environ, {"MONGO_URI": "mongodb://db", "MONGO_DB": "prep"}, clear=True)
    def test_jwt_secret_required(self):
        with self.assertRaises(RuntimeError):
            Settings.from_env()


@patch("backend.mongo.MongoClient")
class TestMongoConnection(unittest.TestCase):
    def test_connects_once_and_closes(self, mock_client_cls):
        client = mock_client_cls.return_value
        conn = MongoConnection("mongodb://db", "prep")

        first = conn.db
        second = conn.connect()

        self.assertIs(first, second)
        mock_client_cls.assert_called_once()
        client.admin.command.assert_called_once_with("ping")
        client["prep"].users.create_index.assert_called_once()

        conn.close()
        client.close.assert_called_once()
        conn.connect()
        self.assertEqual(mock_client_cls.call_count, 2)

    def test_unreachable_server(self, mock_client_cls):
        mock_client_cls.return_value.admin.command.side_effect = ServerSelectionTimeoutError("no servers")
        conn = MongoConnection("mongodb://db", "prep")

        with self.assertRaises(RuntimeError):
            conn.connect()
        mock_client_cls.return_value.close.assert_called_once()

    def test_close_without_connect(self, mock_client_cls):
        MongoConnection("mongodb://db", "prep").close()
        mock_client_cls.assert_not_called()


class TestEnvLoader(unittest.TestCase):
    def test_load(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, ".env")
            with open(path, "w", encoding="utf-8") as fh:
                fh.write('# comment\nMONGO_DB="prep"\nexport JWT_SECRET=abc\nGARBAGE\nMONGO_URI=keep\n')

            with patch.dict(os.environ, {"MONGO_URI": "existing"}, clear=True):
                pairs = set_env_vars.load(path)
                self.assertEqual(pairs["MONGO_DB"], "prep")
                self.assertEqual(os.environ["JWT_SECRET"], "abc")
                self.assertEqual(os.environ["MONGO_URI"], "existing")
                self.assertNotIn("GARBAGE", os.environ)
                status = set_env_vars.env_status()
                self.assertTrue(status["MONGO_DB"])
                self.assertFalse(status["GEMINI_API_KEY"])

    def test_missing_file(self):
        self.assertEqual(set_env_vars.load("/nonexistent/.env"), {})


if __name__ == "__main__":
    unittest.main()
