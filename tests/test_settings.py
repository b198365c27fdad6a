import json
import tempfile
import unittest
from pathlib import Path

from r2_client.settings import ClientSettings, SettingsStorage


class SettingsStorageTests(unittest.TestCase):
    def test_load_returns_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            storage = SettingsStorage(path)

            settings = storage.load()

            self.assertEqual(ClientSettings(), settings)

    def test_load_returns_defaults_for_corrupt_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            path.write_text("{not json", encoding="utf-8")

            self.assertEqual(ClientSettings(), SettingsStorage(path).load())

    def test_load_sanitizes_invalid_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            payload = {
                "region": 42,
                "max_retries": -1,
                "max_upload_size_mb": "nope",
                "timeout": 0,
                "page_size": 5000,
                "transport": "carrier-pigeon",
            }
            path.write_text(json.dumps(payload), encoding="utf-8")
            storage = SettingsStorage(path)

            settings = storage.load()

            self.assertEqual(ClientSettings.region, settings.region)
            self.assertEqual(ClientSettings.max_retries, settings.max_retries)
            self.assertEqual(ClientSettings.max_upload_size_mb, settings.max_upload_size_mb)
            self.assertEqual(ClientSettings.timeout, settings.timeout)
            self.assertEqual(1000, settings.page_size)
            self.assertEqual(ClientSettings.transport, settings.transport)

    def test_round_trips_valid_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            storage = SettingsStorage(path)
            settings = ClientSettings(
                region="wnam",
                max_retries=4,
                max_upload_size_mb=30,
                timeout=12.5,
                page_size=200,
                transport="botocore",
            )

            storage.save(settings)

            self.assertEqual(settings, storage.load())

    def test_save_sanitizes_minimum_values(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "settings.json"
            storage = SettingsStorage(path)
            settings = ClientSettings(
                region=" ",
                max_retries=-2,
                max_upload_size_mb=-5,
                timeout=0,
                page_size=0,
            )

            storage.save(settings)

            saved = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual("auto", saved["region"])
            self.assertEqual(0, saved["max_retries"])
            self.assertEqual(0, saved["max_upload_size_mb"])
            self.assertEqual(1.0, saved["timeout"])
            self.assertEqual(1, saved["page_size"])


if __name__ == "__main__":
    unittest.main()
