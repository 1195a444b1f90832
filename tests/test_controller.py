import tempfile
import unittest
from pathlib import Path

from bucketstore.b2 import B2Storage
from bucketstore.controller import StorageController
from bucketstore.errors import ConfigurationError
from bucketstore.profiles import ConnectionProfile, ProfileStorage
from bucketstore.settings import AppSettings, SettingsStorage

from fake_s3 import FakeClientFactory
from test_profiles import FakeKeychain

ENDPOINT = "b2://bucket.s3.us-west-004.backblazeb2.com"


def make_profile(name="main", endpoint=ENDPOINT):
    return ConnectionProfile(name=name, endpoint=endpoint, access_key="id", secret_key="key")


class StorageControllerTests(unittest.TestCase):
    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmp = Path(tmp.name)
        self.keychain = FakeKeychain()
        self.factory = FakeClientFactory()
        self.controller = self.make_controller()

    def make_controller(self):
        return StorageController(
            storage=ProfileStorage(self.tmp / "profiles.json", keychain=self.keychain),
            settings_storage=SettingsStorage(self.tmp / "settings.json"),
            client_factory=self.factory,
        )

    def test_profiles_round_trip(self):
        self.controller.save_profile(make_profile())

        reloaded = self.make_controller()

        self.assertEqual([make_profile()], reloaded.list_profiles())
        self.assertEqual("key", self.keychain.secrets["main"])

    def test_save_profile_validates_endpoint(self):
        with self.assertRaises(ConfigurationError):
            self.controller.save_profile(make_profile(endpoint="not-a-uri"))

        self.assertEqual([], self.controller.list_profiles())

    def test_rename_replaces_old_profile(self):
        self.controller.save_profile(make_profile("old"))

        self.controller.save_profile(make_profile("new"), original_name="old")

        self.assertEqual(["new"], [p.name for p in self.controller.list_profiles()])

    def test_delete_unknown_profile_raises(self):
        with self.assertRaises(ValueError):
            self.controller.delete_profile("ghost")
        with self.assertRaises(ValueError):
            self.controller.open("ghost")

    def test_open_caches_storage_and_shares_clients(self):
        self.controller.save_profile(make_profile("one"))
        self.controller.save_profile(make_profile("two", "b2://other-bucket.s3.us-west-004.backblazeb2.com"))

        first = self.controller.open("one")
        again = self.controller.open("one")
        second = self.controller.open("two")

        self.assertIsInstance(first, B2Storage)
        self.assertIs(first, again)
        self.assertEqual("b2://other-bucket/", str(second))
        self.assertEqual(1, len(self.factory.calls))

    def test_editing_profile_reopens_storage(self):
        self.controller.save_profile(make_profile())
        first = self.controller.open("main")

        self.controller.save_profile(make_profile(endpoint="b2://moved-bucket.s3.us-west-004.backblazeb2.com"))
        second = self.controller.open("main")

        self.assertIsNot(first, second)
        self.assertEqual("b2://moved-bucket/", str(second))

    def test_save_settings_rebuilds_clients(self):
        self.controller.save_profile(make_profile())
        self.controller.open("main")

        self.controller.save_settings(AppSettings(read_timeout=5))
        self.controller.open("main")

        self.assertEqual(2, len(self.factory.calls))
        self.assertEqual(5, self.factory.calls[1][1]["config"].read_timeout)
        self.assertEqual(5, self.make_controller().settings.read_timeout)


if __name__ == "__main__":
    unittest.main()
