import os

# Rate limiting is off in development; must be set before app.rate_limit is imported.
os.environ.setdefault("ENV_NAME", "development")

import asyncio
from pathlib import Path

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from app.config import Settings
from app.exceptions import EncoderError, TaskLaunchError
from app.playback.cloudfront import UrlSigner
from app.sqs import QueueMessage
from app.transcode.schemas import VariantArtifacts


SOURCE_KEY = "courses/course-1/videos/intro.mp4"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        env_name="test",
        s3_source_bucket="uploads",
        s3_source_key=SOURCE_KEY,
        s3_destination_bucket="hls-output",
        sqs_queue_url="https://sqs.ap-south-1.amazonaws.com/123456789012/uploads",
        ecs_cluster="transcode",
        ecs_task_definition="hls-transcoder:3",
        ecs_container_name="transcoder",
        ecs_subnets="subnet-a, subnet-b",
        ecs_security_group="sg-123",
        cloudfront_domain="d111111abcdef8.cloudfront.net",
        cloudfront_key_pair_id="K2JCJMDEHXQW5F",
        cors_origins="http://localhost:3000",
    )


@pytest.fixture(scope="session")
def private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def signer(private_key: rsa.RSAPrivateKey) -> UrlSigner:
    return UrlSigner("d111111abcdef8.cloudfront.net", "K2JCJMDEHXQW5F", private_key)


class Sleeper:
    """Records requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleeper() -> Sleeper:
    return Sleeper()


# ── Transcode fakes ──────────────────────────────────────────────────────────

class FakeStore:
    """In-memory stand-in for S3Storage."""

    def __init__(self, source: bytes = b"\x00\x00\x00\x18ftypmp42", download_failures: int = 0) -> None:
        self.source = source
        self.download_failures = download_failures
        self.downloads = 0
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.uploads: list[str] = []

    async def download(self, bucket: str, key: str, dest: Path) -> None:
        self.downloads += 1
        if self.download_failures > 0:
            self.download_failures -= 1
            raise ConnectionError("connection reset by peer")
        dest.write_bytes(self.source)

    async def upload(self, path: Path, bucket: str, key: str, content_type: str) -> None:
        self.objects[key] = path.read_bytes()
        self.content_types[key] = content_type
        self.uploads.append(key)

    async def exists(self, bucket: str, key: str) -> bool:
        return key in self.objects


class FakeEncoder:
    """Writes a tiny HLS rendition instead of running ffmpeg."""

    def __init__(self, fail: set[str] | None = None, segments: int = 3) -> None:
        self.fail = fail or set()
        self.segments = segments
        self.calls: list[str] = []

    async def invoke(self, input_path, spec, work_dir, on_progress=None) -> VariantArtifacts:
        self.calls.append(spec.name)
        if spec.name in self.fail:
            raise EncoderError(spec.name, "Transcoding failed with exit code 1")

        out_dir = work_dir / spec.name
        out_dir.mkdir(parents=True, exist_ok=True)
        segments = []
        for i in range(self.segments):
            segment = out_dir / f"segment_{i:03d}.ts"
            segment.write_bytes(b"\x47" * 188)
            segments.append(segment)
        playlist = out_dir / "playlist.m3u8"
        playlist.write_text("#EXTM3U\n#EXT-X-ENDLIST\n")
        if on_progress is not None:
            on_progress(spec, 100.0)
        return VariantArtifacts(spec=spec, playlist=playlist, segments=segments)


# ── Dispatcher fakes ─────────────────────────────────────────────────────────

class FakeQueue:
    """Serves prepared batches; an Exception item is raised from receive()."""

    def __init__(self, batches=(), stop: asyncio.Event | None = None, fail_extend: bool = False) -> None:
        self.batches = list(batches)
        self.stop = stop
        self.fail_extend = fail_extend
        self.deleted: list[str] = []
        self.extended: list[tuple[str, int]] = []

    async def receive(self) -> list[QueueMessage]:
        if not self.batches:
            if self.stop is not None:
                self.stop.set()
            return []
        item = self.batches.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def delete(self, message: QueueMessage) -> None:
        self.deleted.append(message.message_id)

    async def extend_visibility(self, message: QueueMessage, timeout: int) -> None:
        if self.fail_extend:
            raise ConnectionError("sqs unavailable")
        self.extended.append((message.message_id, timeout))


class FakeLauncher:
    def __init__(self, fail_keys: set[str] | None = None, transient_failures: int = 0) -> None:
        self.fail_keys = fail_keys or set()
        self.transient_failures = transient_failures
        self.attempts = 0
        self.launched: list[tuple[str, str]] = []

    async def launch(self, source_bucket: str, source_key: str) -> str:
        self.attempts += 1
        if source_key in self.fail_keys:
            raise TaskLaunchError(f"ECS RunTask failed for {source_key}: RESOURCE:MEMORY")
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise TaskLaunchError(f"ECS RunTask failed for {source_key}: capacity")
        self.launched.append((source_bucket, source_key))
        return f"arn:aws:ecs:ap-south-1:123456789012:task/transcode/{len(self.launched)}"
