import unittest
from unittest.mock import MagicMock, patch

import requests
from botocore.exceptions import ClientError

from skinscan.errors import UpstreamFetchError, UpstreamStorageError
from skinscan.storage import InMemoryStorageClient, S3StorageClient, fetch_url_bytes
from testing_utils import JPEG_BYTES


def _client_error(status, code, operation="HeadBucket"):
    return ClientError(
        {"Error": {"Code": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class InMemoryStorageClientTests(unittest.TestCase):
    def setUp(self):
        self.storage = InMemoryStorageClient()

    def test_signed_url_resolves_to_uploaded_bytes(self):
        self.storage.upload_bytes("u1/123.jpg", JPEG_BYTES, "image/jpeg")
        url = self.storage.presign_get("u1/123.jpg", expires_in=60)
        self.assertIn("expires=60", url)
        self.assertEqual(self.storage.fetch_url(url), JPEG_BYTES)
        self.assertEqual(self.storage.content_types["u1/123.jpg"], "image/jpeg")

    def test_unknown_urls_fail(self):
        with self.assertRaises(UpstreamFetchError):
            self.storage.fetch_url("https://elsewhere.test/u1/123.jpg")
        with self.assertRaises(UpstreamFetchError):
            self.storage.fetch_url(self.storage.presign_get("u1/missing.jpg"))

    def test_paths_are_never_overwritten(self):
        self.storage.upload_bytes("u1/1.jpg", JPEG_BYTES, "image/jpeg")
        with self.assertRaises(UpstreamStorageError):
            self.storage.upload_bytes("u1/1.jpg", b"other", "image/jpeg")
        self.assertEqual(self.storage.stored_objects["u1/1.jpg"], JPEG_BYTES)

    def test_ensure_bucket_is_idempotent(self):
        self.assertTrue(self.storage.ensure_bucket())
        self.assertFalse(self.storage.ensure_bucket())


class FetchUrlBytesTests(unittest.TestCase):
    @patch("skinscan.storage.requests.get")
    def test_returns_content(self, mock_get):
        mock_get.return_value = MagicMock(content=JPEG_BYTES)
        self.assertEqual(fetch_url_bytes("https://s3.test/x", timeout=3), JPEG_BYTES)
        mock_get.assert_called_once_with("https://s3.test/x", timeout=3)

    @patch("skinscan.storage.requests.get")
    def test_http_error(self, mock_get):
        mock_get.return_value.raise_for_status.side_effect = requests.HTTPError("403")
        with self.assertRaises(UpstreamFetchError):
            fetch_url_bytes("https://s3.test/x")

    @patch("skinscan.storage.requests.get")
    def test_timeout(self, mock_get):
        mock_get.side_effect = requests.Timeout()
        with self.assertRaises(UpstreamFetchError) as ctx:
            fetch_url_bytes("https://s3.test/x")
        self.assertIn("Timed out", ctx.exception.message)


class S3StorageClientTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("skinscan.storage.boto3.client")
        self.addCleanup(patcher.stop)
        self.s3 = MagicMock()
        patcher.start().return_value = self.s3
        self.storage = S3StorageClient(
            bucket="skinscan-scans",
            region="us-east-1",
            endpoint="https://project.supabase.test/storage/v1/s3",
            access_key_id="key",
            secret_access_key="secret",
        )

    def test_existing_bucket_is_left_alone(self):
        self.assertFalse(self.storage.ensure_bucket())
        self.s3.create_bucket.assert_not_called()

    def test_missing_bucket_is_created(self):
        self.s3.head_bucket.side_effect = _client_error(404, "404")
        self.assertTrue(self.storage.ensure_bucket())
        self.s3.create_bucket.assert_called_once_with(Bucket="skinscan-scans")

    def test_concurrent_creation_counts_as_success(self):
        self.s3.head_bucket.side_effect = _client_error(404, "404")
        self.s3.create_bucket.side_effect = _client_error(
            409, "BucketAlreadyOwnedByYou", "CreateBucket"
        )
        self.assertFalse(self.storage.ensure_bucket())

    def test_access_denied_propagates(self):
        self.s3.head_bucket.side_effect = _client_error(403, "403")
        with self.assertRaises(ClientError):
            self.storage.ensure_bucket()

    def test_upload_failure_is_wrapped(self):
        self.s3.put_object.side_effect = _client_error(500, "InternalError", "PutObject")
        with self.assertRaises(UpstreamStorageError):
            self.storage.upload_bytes("u1/1.jpg", JPEG_BYTES, "image/jpeg")

    def test_upload_sets_content_type(self):
        self.storage.upload_bytes("u1/1.jpg", JPEG_BYTES, "image/jpeg")
        self.s3.put_object.assert_called_once_with(
            Bucket="skinscan-scans", Key="u1/1.jpg", Body=JPEG_BYTES, ContentType="image/jpeg"
        )

    def test_presign_get(self):
        self.s3.generate_presigned_url.return_value = "https://signed.test/u1/1.jpg"
        url = self.storage.presign_get("u1/1.jpg", expires_in=604800)
        self.assertEqual(url, "https://signed.test/u1/1.jpg")
        self.s3.generate_presigned_url.assert_called_once_with(
            ClientMethod="get_object",
            Params={"Bucket": "skinscan-scans", "Key": "u1/1.jpg"},
            ExpiresIn=604800,
        )


if __name__ == "__main__":
    unittest.main()
