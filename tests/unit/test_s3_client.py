"""
Test suite for S3DocumentClient.

System role: Verification of raw document reads
"""

import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from kb_pipeline.boundary.aws.s3_client import S3DocumentClient
from kb_pipeline.core.exceptions import ObjectStorageError


@pytest.fixture
def boto_client() -> MagicMock:
    client = MagicMock()
    client.get_object.return_value = {"Body": io.BytesIO("Plain text ✓".encode("utf-8"))}
    return client


@pytest.fixture
def s3_client(boto_client: MagicMock) -> S3DocumentClient:
    return S3DocumentClient(bucket="documents", client=boto_client)


class TestS3DocumentClient:
    """Test suite for download_bytes() and download_text()."""

    def test_download_bytes_should_read_object(self, s3_client, boto_client) -> None:
        data = s3_client.download_bytes("docs/a.txt")

        assert data == "Plain text ✓".encode("utf-8")
        boto_client.get_object.assert_called_once_with(Bucket="documents", Key="docs/a.txt")

    @pytest.mark.asyncio
    async def test_download_text_should_decode(self, s3_client) -> None:
        assert await s3_client.download_text("docs/a.txt") == "Plain text ✓"

    def test_empty_key_should_raise(self, s3_client) -> None:
        with pytest.raises(ObjectStorageError, match="S3 key is required"):
            s3_client.download_bytes("")

    def test_missing_key_should_raise_not_found(self, s3_client, boto_client) -> None:
        boto_client.get_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
        )

        with pytest.raises(ObjectStorageError, match="File not found in S3: docs/missing.txt"):
            s3_client.download_bytes("docs/missing.txt")

    def test_access_denied_should_raise(self, s3_client, boto_client) -> None:
        boto_client.get_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "GetObject"
        )

        with pytest.raises(ObjectStorageError, match="Failed to download"):
            s3_client.download_bytes("docs/a.txt")

    def test_connection_error_should_raise(self, s3_client, boto_client) -> None:
        boto_client.get_object.side_effect = EndpointConnectionError(endpoint_url="https://s3")

        with pytest.raises(ObjectStorageError, match="Unexpected error"):
            s3_client.download_bytes("docs/a.txt")

    @pytest.mark.asyncio
    async def test_undecodable_bytes_should_raise(self, s3_client, boto_client) -> None:
        boto_client.get_object.return_value = {"Body": io.BytesIO(b"\xff\xfe\xfa")}

        with pytest.raises(ObjectStorageError, match="not valid utf-8"):
            await s3_client.download_text("docs/binary.pdf")
