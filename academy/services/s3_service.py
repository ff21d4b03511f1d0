"""
S3 storage for certificates and uploaded media (player photos, heatmaps,
match videos).

The boto3 client is created lazily from environment variables on first use.
"""

import logging
import os
import time
import uuid
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

_s3_client = None

MEDIA_FOLDERS = {"players", "heatmaps", "videos", "courses", "rewards"}


def _get_config():
    """Read S3 configuration from environment at call time (not import time)."""
    return {
        "access_key_id": os.getenv("AWS_ACCESS_KEY_ID"),
        "secret_access_key": os.getenv("AWS_SECRET_ACCESS_KEY"),
        "bucket": os.getenv("AWS_S3_BUCKET"),
        "region": os.getenv("AWS_S3_REGION", "me-south-1"),
    }


def is_configured() -> bool:
    cfg = _get_config()
    return all([cfg["access_key_id"], cfg["secret_access_key"], cfg["bucket"]])


def _get_s3_client():
    """Get or create the boto3 S3 client. Lazy-imports boto3 to avoid import-time dependency."""
    global _s3_client
    if _s3_client is None:
        if not is_configured():
            raise ValueError(
                "AWS S3 environment variables not configured. "
                "Set AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY, and AWS_S3_BUCKET."
            )
        import boto3

        cfg = _get_config()
        _s3_client = boto3.client(
            "s3",
            aws_access_key_id=cfg["access_key_id"],
            aws_secret_access_key=cfg["secret_access_key"],
            region_name=cfg["region"],
        )
    return _s3_client


def public_url(key: str) -> str:
    cfg = _get_config()
    return f"https://{cfg['bucket']}.s3.{cfg['region']}.amazonaws.com/{key}"


async def upload_file(file_bytes: bytes, key: str, content_type: str = "application/octet-stream") -> str:
    """
    Upload arbitrary file bytes to S3 under the given key.

    Args:
        file_bytes: Raw file content
        key: S3 object key (e.g., "certificates/3/FSA-2025-000042.pdf")
        content_type: MIME type for the uploaded object

    Returns:
        Public URL of the uploaded file
    """
    client = _get_s3_client()
    client.put_object(
        Bucket=_get_config()["bucket"],
        Key=key,
        Body=file_bytes,
        ContentType=content_type,
    )
    logger.info("Uploaded file to S3: %s", key)
    return public_url(key)


async def upload_certificate(user_id: int, certificate_number: str, pdf_bytes: bytes) -> str:
    """Upload a certificate PDF. Returns its public URL."""
    key = f"certificates/{user_id}/{certificate_number}.pdf"
    return await upload_file(pdf_bytes, key, "application/pdf")


async def upload_media(
    folder: str,
    owner_id: int,
    file_bytes: bytes,
    filename: str,
    content_type: str = "application/octet-stream",
) -> str:
    """
    Upload a media file under ``{folder}/{owner_id}/{timestamp}-{uuid}{ext}``.

    Raises:
        ValueError: If the folder is not a known media folder or the file is empty
    """
    if folder not in MEDIA_FOLDERS:
        raise ValueError(f"Unknown media folder: {folder}")
    if not file_bytes:
        raise ValueError("File is empty")
    ext = os.path.splitext(filename or "")[1].lower()
    key = f"{folder}/{owner_id}/{int(time.time())}-{uuid.uuid4().hex[:8]}{ext}"
    return await upload_file(file_bytes, key, content_type)


async def delete_file(key: str) -> bool:
    """
    Delete a file from S3 by its object key. Best-effort.

    Returns:
        True if deleted successfully, False otherwise
    """
    try:
        client = _get_s3_client()
        client.delete_object(Bucket=_get_config()["bucket"], Key=key)
        logger.info("Deleted file from S3: %s", key)
        return True
    except Exception as e:
        logger.error("Failed to delete S3 file %s: %s", key, e)
        return False


async def delete_by_url(url: str) -> bool:
    key = _extract_key_from_url(url, _get_config()["bucket"])
    if not key:
        logger.warning(f"Could not extract S3 key from URL: {url}")
        return False
    return await delete_file(key)


def _extract_key_from_url(url: str, expected_bucket: Optional[str] = None) -> Optional[str]:
    """
    Extract the S3 object key from a full S3 URL.

    Handles URLs like:
      https://bucket.s3.region.amazonaws.com/certificates/3/FSA-2025-000042.pdf

    Returns:
        Object key string or None if parsing fails or the hostname doesn't match
    """
    try:
        parsed = urlparse(url)
        if expected_bucket and parsed.hostname and expected_bucket not in parsed.hostname:
            logger.warning(
                f"URL hostname '{parsed.hostname}' does not match expected bucket '{expected_bucket}'"
            )
            return None
        key = parsed.path.lstrip("/")
        return key if key else None
    except Exception:
        return None
