"""
Object Storage Service
Stores enhanced media in Cloudflare R2 (or any S3-compatible endpoint) under
branch-scoped keys and hands out public or signed URLs.

Key layout:
  {prefix}/projects/{project_id}/{original|edited|ai-enhanced|reference|temp}/{file}
  {prefix}/projects/{project_id}/versions/{version}/{file}
  {prefix}/global/{context}/{file}
where prefix is "main" on the production branch and "branch-{name}" elsewhere.
"""
import logging
import os
import re
import time
from typing import Optional, Protocol
from urllib.parse import urlparse, unquote

import boto3
from botocore.exceptions import ClientError, BotoCoreError

from .config import get_config, StorageConfig
from .errors import StorageError

logger = logging.getLogger(__name__)

PROJECT_FOLDERS = ("original", "edited", "ai-enhanced", "reference", "temp")
MEDIA_ROUTE = "/api/media/"


class StorageGateway(Protocol):
    """What the pipeline needs from object storage"""

    def put(self, data: bytes, key: str, content_type: str) -> str:
        ...

    def signed_get(self, key: str, ttl_seconds: int = 3600) -> str:
        ...

    def extract_file_key(self, url: str) -> Optional[str]:
        ...


def get_storage_prefix(branch: Optional[str] = None) -> str:
    """'main' for production, 'branch-{name}' for preview branches"""
    if not branch or branch == "main":
        return "main"
    safe = re.sub(r"[^A-Za-z0-9._-]+", "-", branch).strip("-")
    return f"branch-{safe}"


class StoragePaths:
    """Builds object keys for one storage prefix"""

    def __init__(self, prefix: str):
        self.prefix = prefix

    @classmethod
    def for_branch(cls, branch: Optional[str] = None) -> "StoragePaths":
        return cls(get_storage_prefix(branch))

    def project(self, project_id: str, folder: str, filename: str) -> str:
        if folder not in PROJECT_FOLDERS:
            raise ValueError(f"Unknown project folder '{folder}'. Expected one of {PROJECT_FOLDERS}")
        return f"{self.prefix}/projects/{project_id}/{folder}/{filename}"

    def project_version(self, project_id: str, version: int, filename: str) -> str:
        return f"{self.prefix}/projects/{project_id}/versions/{version}/{filename}"

    def global_media(self, context: str, filename: str) -> str:
        return f"{self.prefix}/global/{context}/{filename}"


def generate_unique_filename(original_name: str, now_ms: Optional[int] = None) -> str:
    """name-timestamp.ext with the name reduced to safe characters"""
    base, ext = os.path.splitext(os.path.basename(original_name))
    safe = re.sub(r"[^A-Za-z0-9_-]+", "-", base).strip("-").lower() or "image"
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{safe}-{stamp}{ext.lower()}"


def extract_file_key_from_url(
    url: str,
    public_domain: Optional[str] = None,
) -> Optional[str]:
    """
    Object key for URLs this system serves, None for anything else

    Recognised forms: the app's /api/media/{key} route, direct
    *.r2.cloudflarestorage.com/{bucket}/{key} URLs and the public domain.
    """
    if not url:
        return None
    parsed = urlparse(url)
    host = parsed.netloc.lower()
    path = unquote(parsed.path)

    if path.startswith(MEDIA_ROUTE):
        return path[len(MEDIA_ROUTE):] or None

    if host.endswith("r2.cloudflarestorage.com"):
        # path is /{bucket}/{key}
        parts = path.lstrip("/").split("/", 1)
        return parts[1] if len(parts) == 2 and parts[1] else None

    if public_domain:
        domain = public_domain.replace("https://", "").replace("http://", "").strip("/").lower()
        if host == domain:
            return path.lstrip("/") or None

    return None


def is_internal_media_url(url: str, public_domain: Optional[str] = None) -> bool:
    return extract_file_key_from_url(url, public_domain) is not None


class R2StorageService:
    """Storage gateway backed by boto3's S3 client"""

    def __init__(self, config: Optional[StorageConfig] = None, s3_client=None):
        """
        Args:
            config: Storage settings; defaults to the global config
            s3_client: Pre-built boto3 client (tests pass a mock)
        """
        self.config = config or get_config().storage
        self.bucket = self.config.bucket
        self.paths = StoragePaths.for_branch(self.config.branch)

        if s3_client is not None:
            self.s3_client = s3_client
        else:
            if not self.config.is_configured:
                raise ValueError("R2 storage is not configured (R2_BUCKET_NAME / R2_ACCESS_KEY_ID / R2_SECRET_ACCESS_KEY)")
            kwargs = {
                "region_name": self.config.region,
                "aws_access_key_id": self.config.access_key,
                "aws_secret_access_key": self.config.secret_key,
            }
            if self.config.endpoint_url:
                kwargs["endpoint_url"] = self.config.endpoint_url
            self.s3_client = boto3.client("s3", **kwargs)

        logger.info(f"✅ Storage ready - bucket: {self.bucket}, prefix: {self.paths.prefix}")

    def public_url(self, key: str) -> str:
        if self.config.public_domain:
            domain = self.config.public_domain.replace("https://", "").replace("http://", "").strip("/")
            return f"https://{domain}/{key}"
        return f"{self.config.app_base_url.rstrip('/')}{MEDIA_ROUTE}{key}"

    def put(self, data: bytes, key: str, content_type: str = "image/jpeg") -> str:
        """
        Upload bytes and return the URL the site serves them from

        Raises:
            StorageError: upload failed
        """
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            error_msg = f"Failed to upload {key}: {str(e)}"
            logger.error(error_msg)
            raise StorageError(error_msg) from e

        url = self.public_url(key)
        logger.info(f"✅ Uploaded {len(data) / 1024:.1f}KB → {key}")
        return url

    def signed_get(self, key: str, ttl_seconds: Optional[int] = None) -> str:
        """Presigned GET URL so remote providers can read private objects"""
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds or self.config.signed_url_ttl,
            )
        except (ClientError, BotoCoreError) as e:
            error_msg = f"Failed to sign URL for {key}: {str(e)}"
            logger.error(error_msg)
            raise StorageError(error_msg) from e

    def delete(self, key: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=key)
            logger.info(f"✅ Deleted {key}")
            return True
        except (ClientError, BotoCoreError) as e:
            error_msg = f"Failed to delete {key}: {str(e)}"
            logger.error(error_msg)
            raise StorageError(error_msg) from e

    def extract_file_key(self, url: str) -> Optional[str]:
        return extract_file_key_from_url(url, self.config.public_domain)
