import unittest
from unittest.mock import MagicMock

from skinscan.bootstrap import ensure_demo_account, ensure_storage_bucket, run_startup_tasks
from skinscan.config import Settings
from skinscan.errors import IdentityProviderError
from skinscan.identity import Identity, InMemoryIdentityProvider
from skinscan.kv_store import InMemoryKvStore
from skinscan.repository import ScanRepository
from skinscan.storage import InMemoryStorageClient


class BootstrapTests(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(_env_file=None)
        self.identity = InMemoryIdentityProvider()
        self.repository = ScanRepository(InMemoryKvStore())
        self.storage = InMemoryStorageClient()

    def test_demo_account_is_created_once(self):
        first = ensure_demo_account(self.identity, self.repository, self.settings)
        second = ensure_demo_account(self.identity, self.repository, self.settings)

        self.assertEqual(first, second)
        self.assertEqual(len(self.identity.users), 1)
        self.assertEqual(first.email, "demo@skincare.ai")
        self.assertEqual(self.identity.passwords[first.id], "demo123456")
        self.assertEqual(self.repository.get_profile(first.id).name, "Demo User")

    def test_existing_account_without_profile_gets_one(self):
        user = self.identity.create_user("demo@skincare.ai", "demo123456", "Demo User")
        ensure_demo_account(self.identity, self.repository, self.settings)
        self.assertEqual(self.repository.get_profile(user.id).email, "demo@skincare.ai")

    def test_existing_profile_is_not_overwritten(self):
        user = ensure_demo_account(self.identity, self.repository, self.settings)
        self.repository.update_profile(user.id, "Renamed Demo")
        ensure_demo_account(self.identity, self.repository, self.settings)
        self.assertEqual(self.repository.get_profile(user.id).name, "Renamed Demo")

    def test_concurrent_creation_reuses_account(self):
        winner = Identity(id="demo-id", email="demo@skincare.ai", name="Demo User")
        identity = MagicMock()
        identity.find_user_by_email.side_effect = [None, winner]
        identity.create_user.side_effect = IdentityProviderError(
            "already registered", status_code=400
        )

        user = ensure_demo_account(identity, self.repository, self.settings)

        self.assertEqual(user, winner)
        self.assertEqual(self.repository.get_profile("demo-id").name, "Demo User")

    def test_create_failure_without_account_propagates(self):
        identity = MagicMock()
        identity.find_user_by_email.return_value = None
        identity.create_user.side_effect = IdentityProviderError()
        with self.assertRaises(IdentityProviderError):
            ensure_demo_account(identity, self.repository, self.settings)

    def test_bucket_is_created_once(self):
        self.assertTrue(ensure_storage_bucket(self.storage))
        self.assertFalse(ensure_storage_bucket(self.storage))

    def test_startup_tasks_are_idempotent(self):
        run_startup_tasks(self.storage, self.identity, self.repository, self.settings)
        run_startup_tasks(self.storage, self.identity, self.repository, self.settings)
        self.assertTrue(self.storage.bucket_created)
        self.assertEqual(len(self.identity.users), 1)

    def test_storage_failure_does_not_stop_startup(self):
        storage = MagicMock()
        storage.ensure_bucket.side_effect = RuntimeError("storage down")

        with self.assertLogs("skinscan.bootstrap", level="ERROR") as logs:
            run_startup_tasks(storage, self.identity, self.repository, self.settings)

        self.assertIn("Error initializing storage", logs.output[0])
        self.assertIsNotNone(self.identity.find_user_by_email("demo@skincare.ai"))


if __name__ == "__main__":
    unittest.main()
