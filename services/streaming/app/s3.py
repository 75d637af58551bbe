"""
AWS S3 utilities for source download, HLS artifact upload and existence probes.

One client is opened per process (``async with S3Storage(settings) as store``)
and shared by every concurrent transfer of the job.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from botocore.exceptions import ClientError

from app.aws import AwsClient
from app.transcode.constants import TRANSCODER_VERSION, UPLOAD_CACHE_CONTROL

logger = logging.getLogger(__name__)

# Error codes S3 uses for a missing key (HeadObject returns a bare 404).
_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def is_not_found(exc: ClientError) -> bool:
    code = str(exc.response.get("Error", {}).get("Code", ""))
    return code in _NOT_FOUND_CODES


class S3Storage(AwsClient):
    service_name = "s3"

    async def download(self, bucket: str, key: str, dest: Path) -> None:
        logger.info("Downloading s3://%s/%s to %s", bucket, key, dest)
        await self.client.download_file(bucket, key, str(dest))

    async def upload(self, path: Path, bucket: str, key: str, content_type: str) -> None:
        logger.debug("Uploading %s to s3://%s/%s", path, bucket, key)
        await self.client.upload_file(
            str(path),
            bucket,
            key,
            ExtraArgs={
                "ContentType": content_type,
                "CacheControl": UPLOAD_CACHE_CONTROL,
                "Metadata": {
                    "transcoded-date": datetime.now(timezone.utc).isoformat(),
                    "transcoder-version": TRANSCODER_VERSION,
                },
            },
        )

    async def exists(self, bucket: str, key: str) -> bool:
        """Idempotency probe. Only a "not found" answer means absent; other errors propagate."""
        try:
            await self.client.head_object(Bucket=bucket, Key=key)
        except ClientError as exc:
            if is_not_found(exc):
                return False
            raise
        return True
