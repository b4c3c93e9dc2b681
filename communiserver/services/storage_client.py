# communiserver/services/storage_client.py
"""S3 / MinIO access for report evidence uploads."""
from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass
from typing import Iterable, Optional

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import settings

log = logging.getLogger("communiserver.storage")


class StorageError(RuntimeError):
    pass


@dataclass(frozen=True)
class UploadItem:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


def _normalize_endpoint(endpoint_url: Optional[str]) -> Optional[str]:
    if endpoint_url:
        return endpoint_url.rstrip("/")
    return None


def _build_s3_config() -> Optional[Config]:
    style = (settings.s3_url_style or "").strip().lower()
    if style in {"path", "virtual"}:
        return Config(s3={"addressing_style": style})
    return None


def get_s3_client() -> BaseClient:
    return boto3.client(
        "s3",
        region_name=settings.s3_region or None,
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        endpoint_url=_normalize_endpoint(settings.s3_endpoint_url),
        config=_build_s3_config(),
    )


def build_public_url(bucket: str, key: str) -> str:
    base = (settings.s3_public_base_url or settings.s3_endpoint_url or "").rstrip("/")
    style = (settings.s3_url_style or "path").lower()

    if base:
        scheme, _, host = base.partition("://")
        if not host:
            scheme, host = "https", base
        if style == "virtual":
            return f"{scheme}://{bucket}.{host}/{key}"
        return f"{scheme}://{host}/{bucket}/{key}"

    if style == "virtual":
        return f"https://{bucket}.s3.amazonaws.com/{key}"
    return f"https://s3.amazonaws.com/{bucket}/{key}"


def unique_key(filename: str, *, folder: str = "uploads", now_ms: Optional[int] = None) -> str:
    """`<folder>/<epoch-ms>_<random>_<sanitized-stem>.<ext>`"""
    name = (filename or "file").strip() or "file"
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    stem = re.sub(r"[^a-zA-Z0-9]", "_", stem) or "file"
    ext = re.sub(r"[^a-zA-Z0-9]", "", ext).lower()

    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    key = f"{ts}_{secrets.token_hex(6)}_{stem}"
    if ext:
        key = f"{key}.{ext}"
    folder = folder.strip("/")
    return f"{folder}/{key}" if folder else key


def upload_files(
    items: Iterable[UploadItem],
    *,
    folder: str = "uploads",
    client: Optional[BaseClient] = None,
) -> list[str]:
    """Puts every item in the bucket and returns their public URLs in order."""
    s3 = client or get_s3_client()
    bucket = settings.s3_bucket
    urls: list[str] = []

    for item in items:
        key = unique_key(item.filename, folder=folder)
        try:
            s3.put_object(
                Bucket=bucket,
                Key=key,
                Body=item.content,
                ContentType=item.content_type,
                ContentDisposition=f'inline; filename="{item.filename}"',
                Metadata={"original-name": item.filename},
            )
        except (BotoCoreError, ClientError) as e:
            log.warning("upload failed", extra={"bucket": bucket, "key": key, "error": str(e)})
            raise StorageError(str(e)) from e

        urls.append(build_public_url(bucket, key))

    log.info("files uploaded", extra={"bucket": bucket, "count": len(urls)})
    return urls
