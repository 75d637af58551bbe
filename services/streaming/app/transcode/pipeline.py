"""
Transcode pipeline: one source video in, one uploaded HLS package out.

Order of work:
  1. scoped workspace (removed on every exit path)
  2. download source (retried, must be non-empty)
  3. canary: lowest variant alone; an encoder failure aborts the job
  4. remaining variants concurrently: skip if already in S3, else encode
     and upload (segments first, playlist last, bounded concurrency)
  5. master playlist for every configured variant
Already uploaded variants are never rolled back; a redelivered job skips them.
"""
from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from collections.abc import Awaitable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from app.exceptions import CanaryFailedError, EmptySourceError, EncoderError
from app.transcode.constants import (
    CONTENT_TYPES,
    DEFAULT_CONTENT_TYPE,
    MASTER_PLAYLIST_NAME,
    VariantSpec,
)
from app.transcode.manifest import build_master_playlist
from app.transcode.schemas import TranscodeJob, VariantArtifacts, VariantResult
from shared.utils.retry import RetryPolicy, retry_async

if TYPE_CHECKING:
    from app.s3 import S3Storage
    from app.transcode.encoder import FfmpegEncoder, ProgressCallback

logger = logging.getLogger(__name__)

T = TypeVar("T")

TEMP_DIR_PREFIX = "hls-"


async def join_all(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Run awaitables concurrently; on the first failure cancel the rest and re-raise it.

    Results keep the input order. Cancelled siblings are awaited before
    returning so nothing keeps writing into the workspace.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    # Retrieve every finished error, not only the one raised.
    errors = [task.exception() for task in tasks if task in done and not task.cancelled()]
    for error in errors:
        if error is not None:
            raise error
    return [task.result() for task in tasks]


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)


class TranscodePipeline:
    def __init__(
        self,
        store: S3Storage,
        encoder: FfmpegEncoder,
        retry_policy: RetryPolicy,
        *,
        upload_concurrency: int = 5,
        workspace_root: str | Path | None = None,
        on_progress: ProgressCallback | None = None,
        sleep=asyncio.sleep,
    ) -> None:
        if upload_concurrency < 1:
            raise ValueError("upload_concurrency must be >= 1")
        self.store = store
        self.encoder = encoder
        self.retry_policy = retry_policy
        self.upload_concurrency = upload_concurrency
        self.workspace_root = str(workspace_root) if workspace_root else None
        self.on_progress = on_progress
        self._sleep = sleep

    async def run(self, job: TranscodeJob) -> list[VariantResult]:
        """Produce the full HLS package for ``job``. Results follow ``job.variants`` order."""
        logger.info("Starting video processing for %s", job.source_key)
        started = time.monotonic()

        with tempfile.TemporaryDirectory(prefix=TEMP_DIR_PREFIX, dir=self.workspace_root) as tmp:
            workspace = Path(tmp)
            logger.info("Workspace acquired: %s", workspace)

            source = await self._download(job, workspace)

            canary = job.canary
            logger.info("Testing transcoding with %s resolution first", canary.name)
            try:
                canary_result = await self._process_variant(job, canary, source, workspace)
            except EncoderError as exc:
                raise CanaryFailedError(canary.name) from exc
            logger.info("Canary %s succeeded", canary.name)

            results = await join_all(
                self._process_variant(job, spec, source, workspace) for spec in job.remaining
            )
            results.append(canary_result)

            await self._upload_master(job, workspace)
            logger.info("Releasing workspace %s", workspace)

        logger.info(
            "HLS transcoding completed successfully for %s in %.2fs",
            job.source_key, time.monotonic() - started,
        )
        return results

    # ── Stages ───────────────────────────────────────────────────────────────

    async def _download(self, job: TranscodeJob, workspace: Path) -> Path:
        dest = workspace / f"original-{Path(job.source_key).name}"

        async def attempt() -> Path:
            await self.store.download(job.source_bucket, job.source_key, dest)
            try:
                size = dest.stat().st_size
            except OSError as exc:
                raise EmptySourceError(f"Downloaded file is unreadable: {dest}") from exc
            if size == 0:
                raise EmptySourceError(f"Downloaded file is empty: {job.source_key}")
            logger.info("Downloaded file size: %d bytes", size)
            return dest

        return await retry_async(
            attempt, self.retry_policy,
            description=f"download s3://{job.source_bucket}/{job.source_key}",
            sleep=self._sleep,
        )

    async def _process_variant(
        self,
        job: TranscodeJob,
        spec: VariantSpec,
        source: Path,
        workspace: Path,
    ) -> VariantResult:
        manifest_key = job.asset.variant_playlist_key(spec.name)
        if await self.store.exists(job.destination_bucket, manifest_key):
            logger.info("Variant %s already exists, skipping", spec.name)
            return VariantResult(spec=spec, manifest_key=manifest_key, skipped=True)

        try:
            artifacts = await self.encoder.invoke(source, spec, workspace, self.on_progress)
            uploaded = await self._upload_variant(job, artifacts)
        except Exception:
            logger.error("Failed to process %s", spec.name)
            raise
        logger.info("Uploaded HLS files for %s (%d objects)", spec.name, len(uploaded))
        return VariantResult(spec=spec, manifest_key=manifest_key, uploaded_keys=uploaded)

    async def _upload_variant(self, job: TranscodeJob, artifacts: VariantArtifacts) -> list[str]:
        base = job.asset.variant_base(artifacts.spec.name)
        semaphore = asyncio.Semaphore(self.upload_concurrency)

        async def upload_one(path: Path) -> str:
            key = f"{base}/{path.name}"
            async with semaphore:
                await self._upload(path, job.destination_bucket, key)
            return key

        # Playlist goes last: its presence marks the variant as complete.
        keys = await join_all(upload_one(path) for path in artifacts.segments)
        keys.append(await upload_one(artifacts.playlist))
        return keys

    async def _upload_master(self, job: TranscodeJob, workspace: Path) -> None:
        path = workspace / MASTER_PLAYLIST_NAME
        path.write_text(build_master_playlist(job.variants), encoding="utf-8")
        await self._upload(path, job.destination_bucket, job.asset.master_playlist_key)
        logger.info("Uploaded master playlist %s", job.asset.master_playlist_key)

    async def _upload(self, path: Path, bucket: str, key: str) -> None:
        content_type = content_type_for(path)
        await retry_async(
            lambda: self.store.upload(path, bucket, key, content_type),
            self.retry_policy,
            description=f"upload s3://{bucket}/{key}",
            sleep=self._sleep,
        )
