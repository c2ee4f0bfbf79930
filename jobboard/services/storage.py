# jobboard/services/storage.py
import asyncio
import logging
import uuid
import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from pathlib import Path
from typing import Optional
from fastapi import UploadFile
import aiofiles

from jobboard.core.config import settings

logger = logging.getLogger(__name__)

# folders files are grouped under, both in the bucket and on disk
FOLDERS = ("resume", "profile")


def _local_root() -> Path:
    root = Path(settings.LOCAL_UPLOAD_DIR)
    for folder in FOLDERS:
        (root / folder).mkdir(parents=True, exist_ok=True)
    return root


def _get_s3_client():
    """
    Return a boto3 S3 client configured for Cloudflare R2 or MinIO.
    If no S3_ENDPOINT or credentials are configured, returns None.
    """
    endpoint = settings.S3_ENDPOINT
    access_key = settings.S3_ACCESS_KEY
    secret_key = settings.S3_SECRET_KEY

    if settings.S3_PROVIDER and settings.S3_PROVIDER.lower() == "minio" and settings.MINIO_ENDPOINT:
        endpoint = settings.MINIO_ENDPOINT
        access_key = settings.MINIO_ACCESS_KEY
        secret_key = settings.MINIO_SECRET_KEY

    if not endpoint or not access_key or not secret_key or not settings.S3_BUCKET:
        return None

    return boto3.client(
        "s3",
        endpoint_url=str(endpoint),
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        config=Config(signature_version="s3v4"),
        region_name=(settings.S3_REGION or None),
    )


def ensure_bucket(client, bucket: str) -> bool:
    """
    Ensure the bucket exists (MinIO in dev). Returns True if it exists or was created.
    """
    try:
        client.head_bucket(Bucket=bucket)
        return True
    except ClientError:
        try:
            client.create_bucket(Bucket=bucket)
            return True
        except ClientError:
            # R2 buckets are created in the dashboard
            return False


def _put_s3(key: str, contents: bytes, content_type: Optional[str]) -> bool:
    """
    Blocking upload to the configured bucket. Returns False when S3 is not
    configured or the upload failed.
    """
    s3 = _get_s3_client()
    if s3 is None:
        return False
    try:
        ensure_bucket(s3, settings.S3_BUCKET)
        s3.put_object(Bucket=settings.S3_BUCKET, Key=key, Body=contents, ContentType=content_type)
        return True
    except (BotoCoreError, ClientError):
        logger.exception("S3 upload of %s failed, falling back to local storage", key)
        return False


async def store_file(file: UploadFile, folder: str, data: Optional[bytes] = None) -> str:
    """
    Store an uploaded file under ``folder`` and return its public name (``<uuid><ext>``).
    Tries the configured S3-compatible bucket first, then the local filesystem.
    """
    if folder not in FOLDERS:
        raise ValueError(f"unknown upload folder: {folder}")
    contents = data if data is not None else await file.read()
    name = f"{uuid.uuid4().hex}{Path(file.filename or '').suffix.lower()}"
    key = f"{folder}/{name}"

    loop = asyncio.get_event_loop()
    # boto3 is blocking
    if await loop.run_in_executor(None, _put_s3, key, contents, file.content_type):
        return name

    local_path = _local_root() / key
    async with aiofiles.open(local_path, "wb") as out:
        await out.write(contents)
    return name


def download_to_bytes(folder: str, name: str) -> Optional[bytes]:
    """
    Blocking download. Returns bytes or None when the object does not exist.
    """
    if folder not in FOLDERS or Path(name).name != name:
        return None
    key = f"{folder}/{name}"

    s3 = _get_s3_client()
    if s3:
        try:
            resp = s3.get_object(Bucket=settings.S3_BUCKET, Key=key)
            return resp["Body"].read()
        except (BotoCoreError, ClientError):
            logger.warning("S3 download of %s failed, trying local storage", key)

    p = _local_root() / key
    if p.exists():
        return p.read_bytes()
    return None
