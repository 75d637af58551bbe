"""
Transcode task entrypoint. Runs once inside the ephemeral ECS container.

Start:  python -m app.transcode.job   (or the ``streaming-transcode`` script)

The dispatcher passes the job through the container environment:
S3_SOURCE_BUCKET, S3_SOURCE_KEY, S3_DESTINATION_BUCKET.
Exit code 0 on success, 1 on configuration error or failed job.
"""
from __future__ import annotations

import asyncio
import logging
import sys

from pydantic import ValidationError

from app.config import TRANSCODER_REQUIRED, Settings
from app.exceptions import ConfigurationError
from app.s3 import S3Storage
from app.transcode.encoder import FfmpegEncoder
from app.transcode.pipeline import TranscodePipeline
from app.transcode.schemas import TranscodeJob, VariantResult

logger = logging.getLogger("streaming.transcode")


async def run_job(settings: Settings, encoder: FfmpegEncoder | None = None) -> list[VariantResult]:
    job = TranscodeJob.from_source(
        source_bucket=settings.s3_source_bucket,
        source_key=settings.s3_source_key,
        destination_bucket=settings.s3_destination_bucket,
    )
    encoder = encoder or FfmpegEncoder.from_settings(settings)
    async with S3Storage(settings) as store:
        pipeline = TranscodePipeline(
            store,
            encoder,
            settings.transfer_retry_policy,
            upload_concurrency=settings.transcode_upload_concurrency,
            workspace_root=settings.transcode_workspace_root or None,
        )
        return await pipeline.run(job)


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")
    try:
        settings = Settings()
        settings.require(*TRANSCODER_REQUIRED)
    except (ConfigurationError, ValidationError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1
    logging.getLogger().setLevel(settings.log_level.upper())

    try:
        asyncio.run(run_job(settings))
    except Exception:
        logger.exception("HLS transcoding failed for %s", settings.s3_source_key)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
