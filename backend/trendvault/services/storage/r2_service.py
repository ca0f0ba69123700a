"""Cloudflare R2 storage service using S3-compatible API"""
import logging
from typing import Dict, Optional
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from trendvault.core.config import settings

logger = logging.getLogger(__name__)

# Stored videos never change once written
LONG_LIVED_CACHE_CONTROL = "public, max-age=31536000"


def _encode_object_key_for_url(object_key: str) -> str:
    """URL-encode each path segment of an object key, keeping the slashes

    Args:
        object_key: R2 object key (e.g., "videos/1234567890/1700000000000.mp4")

    Returns:
        URL-encoded object key
    """
    if not object_key:
        return ""
    return '/'.join(quote(segment, safe='') for segment in object_key.split('/'))


def _ascii_metadata(metadata: Dict[str, str]) -> Dict[str, str]:
    """S3 user metadata travels as HTTP headers, so values must be ASCII"""
    return {
        key: (value or "").encode("ascii", "ignore").decode("ascii")[:1024]
        for key, value in metadata.items()
    }


class R2Service:
    """Blob store for durable video copies"""

    def __init__(self, s3_client=None, bucket: Optional[str] = None, public_url: Optional[str] = None):
        """Initialize R2 service, from settings unless a client is injected

        Raises:
            ValueError: If R2 configuration is missing and no client is injected
        """
        if s3_client is None:
            if not settings.r2_configured:
                raise ValueError(
                    "R2 configuration is missing. Set R2_ACCESS_KEY_ID, R2_SECRET_ACCESS_KEY, "
                    "R2_BUCKET_NAME and R2_ENDPOINT_URL environment variables."
                )
            s3_client = boto3.client(
                's3',
                endpoint_url=settings.R2_ENDPOINT_URL,
                aws_access_key_id=settings.R2_ACCESS_KEY_ID,
                aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
                config=Config(signature_version='s3v4')
            )

        self.s3_client = s3_client
        self.bucket = bucket or settings.R2_BUCKET_NAME
        self.public_url = (public_url if public_url is not None else settings.R2_PUBLIC_URL).rstrip('/')
        logger.info(f"R2Service initialized for bucket: {self.bucket}")

    def put_object(self, object_key: str, data: bytes, content_type: str = "video/mp4",
                   cache_control: str = LONG_LIVED_CACHE_CONTROL,
                   metadata: Optional[Dict[str, str]] = None) -> None:
        """Write bytes to R2 in a single request

        Raises:
            ValueError: If object_key is empty
            ClientError/BotoCoreError: If the write fails
        """
        if not object_key:
            raise ValueError("object_key cannot be empty")

        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=object_key,
                Body=data,
                ContentType=content_type,
                CacheControl=cache_control,
                Metadata=_ascii_metadata(metadata or {})
            )
            logger.info(f"Successfully uploaded {len(data)} bytes to R2 as {object_key}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {object_key} to R2: {e}", exc_info=True)
            raise

    def object_exists(self, object_key: str) -> bool:
        """HEAD the object; a 404 means it is absent

        Raises:
            ClientError/BotoCoreError: For failures other than not-found
        """
        if not object_key:
            return False

        try:
            self.s3_client.head_object(Bucket=self.bucket, Key=object_key)
            return True
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code in ("404", "NoSuchKey", "NotFound"):
                return False
            logger.warning(f"Error checking if object exists {object_key}: {e}")
            raise

    def get_public_url(self, object_key: str) -> str:
        """Public URL for an object served from the configured R2 public domain

        Raises:
            ValueError: If object_key is empty or R2_PUBLIC_URL is not configured
        """
        if not object_key:
            raise ValueError("object_key cannot be empty")
        if not self.public_url:
            raise ValueError("R2_PUBLIC_URL is not configured")
        return f"{self.public_url}/{_encode_object_key_for_url(object_key.lstrip('/'))}"


def create_r2_service() -> Optional[R2Service]:
    """Build the process-wide R2 service, or None when R2 is not configured"""
    try:
        return R2Service()
    except ValueError as e:
        logger.warning(f"R2 storage unavailable, restricted videos will not be stored: {e}")
        return None
