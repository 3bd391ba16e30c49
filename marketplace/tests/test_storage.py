import unittest
from unittest.mock import patch

from botocore.exceptions import ClientError

from marketplace.errors import StorageApiError
from marketplace.storage import (
    InMemoryStorageClient,
    S3StorageClient,
    public_object_url,
    timestamped_name,
)


class PublicUrlTests(unittest.TestCase):
    def test_public_object_url(self):
        self.assertEqual(
            public_object_url("https://proj.example.co/", "cor_bucket", "123_cor.pdf"),
            "https://proj.example.co/storage/v1/object/public/cor_bucket/123_cor.pdf",
        )

    def test_timestamped_name_keeps_basename(self):
        name = timestamped_name("/tmp/photos/desk.jpg")
        prefix, _, rest = name.partition("_")
        self.assertTrue(prefix.isdigit())
        self.assertEqual(rest, "desk.jpg")


class InMemoryStorageClientTests(unittest.TestCase):
    def test_upload_then_public_url(self):
        storage = InMemoryStorageClient(base_url="https://example.test")
        storage.upload("product_bucket", "a.jpg", b"jpeg", "image/jpeg")
        self.assertEqual(storage.get_bytes("product_bucket", "a.jpg"), b"jpeg")
        self.assertIn(
            "/product_bucket/a.jpg", storage.get_public_url("product_bucket", "a.jpg")
        )

    def test_upload_existing_object_fails(self):
        storage = InMemoryStorageClient()
        storage.upload("cor_bucket", "1_cor.pdf", b"pdf")
        with self.assertRaises(StorageApiError):
            storage.upload("cor_bucket", "1_cor.pdf", b"pdf")


class S3StorageClientTests(unittest.TestCase):
    def _client(self, boto_client):
        return S3StorageClient(
            endpoint="https://proj.example.co/storage/v1/s3",
            region="us-east-1",
            access_key_id="key",
            secret_access_key="secret",
            public_base_url="https://proj.example.co",
        )

    @patch("marketplace.storage.boto3.client")
    def test_upload_puts_object(self, boto_client):
        client = self._client(boto_client)
        client.upload("profile_bucket", "me.png", b"png", "image/png")
        boto_client.return_value.put_object.assert_called_once_with(
            Bucket="profile_bucket", Key="me.png", Body=b"png", ContentType="image/png"
        )
        self.assertEqual(
            client.get_public_url("profile_bucket", "me.png"),
            "https://proj.example.co/storage/v1/object/public/profile_bucket/me.png",
        )

    @patch("marketplace.storage.boto3.client")
    def test_upload_error_is_wrapped(self, boto_client):
        boto_client.return_value.put_object.side_effect = ClientError(
            {
                "Error": {"Code": "AccessDenied", "Message": "new row violates policy"},
                "ResponseMetadata": {"HTTPStatusCode": 403},
            },
            "PutObject",
        )
        client = self._client(boto_client)
        with self.assertRaises(StorageApiError) as ctx:
            client.upload("product_bucket", "x.jpg", b"x")
        self.assertEqual(ctx.exception.status, 403)
        self.assertEqual(ctx.exception.message, "new row violates policy")


if __name__ == "__main__":
    unittest.main()
