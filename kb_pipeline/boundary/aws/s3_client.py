"""
S3 client for raw document reads.

Reads raw document bytes (or pre-extracted text) by key at ingestion time.
The pipeline never writes to the documents bucket.

Dependencies: boto3
System role: Object storage boundary for the ingestion service
"""

import asyncio

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from kb_pipeline.core.exceptions import ObjectStorageError


class S3DocumentClient:
    """Read-only access to the documents bucket."""

    def __init__(self, bucket: str, region: str = "eu-west-1", client=None) -> None:
        """
        Initialize S3 client for document bucket.

        Args:
            bucket: S3 bucket name for document storage
            region: AWS region for S3 bucket
            client: Pre-built boto3 S3 client (tests, custom endpoints)
        """
        self._bucket = bucket
        self._region = region
        self._s3_client = client or boto3.client("s3", region_name=region)

    def download_bytes(self, s3_key: str) -> bytes:
        """
        Fetch an object's bytes.

        Args:
            s3_key: S3 object key

        Returns:
            bytes: Object body

        Raises:
            ObjectStorageError: When the key is empty, missing, or unreadable
        """
        if not s3_key:
            raise ObjectStorageError("S3 key is required", s3_key)

        try:
            response = self._s3_client.get_object(Bucket=self._bucket, Key=s3_key)
            return response["Body"].read()
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code in ("404", "NoSuchKey"):
                raise ObjectStorageError(f"File not found in S3: {s3_key}", s3_key) from e
            raise ObjectStorageError(f"Failed to download from S3: {e}", s3_key) from e
        except BotoCoreError as e:
            raise ObjectStorageError(f"Unexpected error downloading from S3: {e}", s3_key) from e

    async def download_text(self, s3_key: str, encoding: str = "utf-8") -> str:
        """
        Fetch and decode a text object without blocking the event loop.

        Raises:
            ObjectStorageError: When the download fails or the bytes do not decode
        """
        data = await asyncio.to_thread(self.download_bytes, s3_key)
        try:
            return data.decode(encoding)
        except UnicodeDecodeError as e:
            raise ObjectStorageError(
                f"Object is not valid {encoding} text: {s3_key}", s3_key
            ) from e
