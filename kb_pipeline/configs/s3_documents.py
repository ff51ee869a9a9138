"""
S3 Documents bucket configuration.

Settings for the raw document storage bucket read at ingestion time.

Dependencies: pydantic_settings
System role: S3 documents bucket configuration
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class S3DocumentsSettings(BaseSettings):
    """Settings for S3 documents bucket operations."""

    model_config = SettingsConfigDict(
        env_prefix="S3_DOCUMENTS_",
        case_sensitive=False,
        extra="ignore",
    )

    bucket: str = Field(
        default="knowledge-base-documents",
        description="S3 bucket for raw document storage",
    )
    region: str = Field(
        default="eu-west-1",
        description="AWS region for S3 bucket",
    )
    text_encoding: str = Field(
        default="utf-8",
        description="Encoding used to decode extracted text objects",
    )
