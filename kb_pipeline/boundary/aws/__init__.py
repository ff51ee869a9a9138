"""AWS boundary: object storage access for raw documents."""

from kb_pipeline.boundary.aws.s3_client import S3DocumentClient

__all__ = ["S3DocumentClient"]
