import json
import os
import shutil
import tempfile
import unittest

import dbcase  # noqa: F401
from shop.preferences import AGE_VERIFIED_KEY, LANGUAGE_KEY, Preferences
from shop.storage import LocalStorage


class LocalStorageTestCase(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.path = os.path.join(self.temp_dir, "profile", "storage.json")
        self.storage = LocalStorage(self.path)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_missing_file_reads_as_empty(self):
        self.assertIsNone(self.storage.get_item("anything"))
        self.assertFalse(os.path.exists(self.path))

    def test_set_get_remove_clear(self):
        self.storage.set_item("a", "1")
        self.storage.set_item("b", "2")
        self.assertEqual(self.storage.get_item("a"), "1")

        # values survive a new handle on the same file
        self.assertEqual(LocalStorage(self.path).get_item("b"), "2")

        self.storage.remove_item("a")
        self.assertIsNone(self.storage.get_item("a"))
        self.storage.remove_item("never-set")

        self.storage.clear()
        with open(self.path, encoding="utf-8") as f:
            self.assertEqual(json.load(f), {})

    def test_no_temp_files_left_behind(self):
        self.storage.set_item("k", "v")
        self.assertEqual(os.listdir(os.path.dirname(self.path)), ["storage.json"])

    def test_non_object_file_is_rejected(self):
        os.makedirs(os.path.dirname(self.path))
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(["not", "a", "dict"], f)
        with self.assertRaises(ValueError):
            self.storage.get_item("k")


class PreferencesTestCase(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.storage = LocalStorage(os.path.join(self.temp_dir, "storage.json"))
        self.prefs = Preferences(self.storage)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_age_gate(self):
        self.assertFalse(self.prefs.age_verified)
        self.prefs.confirm_age()
        self.assertTrue(self.prefs.age_verified)
        self.assertEqual(self.storage.get_item(AGE_VERIFIED_KEY), "true")

    def test_language(self):
        self.assertEqual(self.prefs.language, "en")
        self.prefs.language = "sv"
        self.assertEqual(self.prefs.language, "sv")
        self.assertEqual(self.storage.get_item(LANGUAGE_KEY), "sv")

        with self.assertRaises(ValueError):
            self.prefs.language = "de"
        self.assertEqual(self.prefs.language, "sv")

        # unknown stored values fall back to the default
        self.storage.set_item(LANGUAGE_KEY, "fr")
        self.assertEqual(self.prefs.language, "en")

    def test_broken_storage_is_not_fatal(self):
        # a directory where the file should be makes every read fail
        broken = Preferences(LocalStorage(self.temp_dir))
        self.assertFalse(broken.age_verified)
        self.assertEqual(broken.language, "en")
        broken.confirm_age()
        broken.language = "sv"


if __name__ == "__main__":
    unittest.main()
