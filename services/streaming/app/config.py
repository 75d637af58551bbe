from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.exceptions import ConfigurationError
from shared.utils.retry import RetryPolicy


def _env_files() -> list[str]:
    """Load .env from backend root (when running from services/streaming) then local .env."""
    base = Path(__file__).resolve().parent.parent.parent.parent  # backend root
    return [str(base / ".env"), ".env"]


class Settings(BaseSettings):
    """Process configuration. Built once at startup and passed to every component."""

    model_config = SettingsConfigDict(
        env_file=_env_files(),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    env_name: str = "development"
    log_level: str = "INFO"

    # ── AWS ───────────────────────────────────────────────────────────────────
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "ap-south-1"

    # ── S3 ────────────────────────────────────────────────────────────────────
    # The transcode task receives these three through its container environment.
    s3_source_bucket: str = ""
    s3_source_key: str = ""
    s3_destination_bucket: str = ""

    # ── SQS (dispatcher) ──────────────────────────────────────────────────────
    sqs_queue_url: str = ""
    sqs_batch_size: int = 5
    sqs_wait_time_seconds: int = 5
    sqs_visibility_timeout: int = 900  # 15 min
    dispatcher_error_pause_secs: float = 1.0

    # ── ECS (dispatcher) ──────────────────────────────────────────────────────
    ecs_cluster: str = ""
    ecs_task_definition: str = ""
    ecs_container_name: str = ""
    ecs_subnets: str = ""
    ecs_security_group: str = ""
    ecs_launch_type: str = "FARGATE"
    ecs_assign_public_ip: bool = True

    # ── Retry ─────────────────────────────────────────────────────────────────
    retry_max_attempts: int = 3
    retry_base_delay_secs: float = 1.0
    retry_max_delay_secs: float = 10.0
    launch_retry_max_delay_secs: float = 5.0

    # ── Transcoding ───────────────────────────────────────────────────────────
    transcode_workspace_root: str = ""  # empty → system temp dir
    transcode_upload_concurrency: int = 5
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    hls_segment_duration: int = 4
    hls_gop_size: int = 48

    # ── CloudFront ────────────────────────────────────────────────────────────
    cloudfront_domain: str = ""
    cloudfront_key_pair_id: str = ""
    cloudfront_private_key: str = ""  # PEM string or path
    signed_url_default_expiry_secs: int = 3600

    # ── CORS ─────────────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        return [x.strip() for x in self.cors_origins.split(",") if x.strip()]

    @property
    def ecs_subnets_list(self) -> list[str]:
        return [x.strip() for x in self.ecs_subnets.split(",") if x.strip()]

    @property
    def transfer_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay_secs,
            max_delay=self.retry_max_delay_secs,
        )

    @property
    def launch_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay_secs,
            max_delay=self.launch_retry_max_delay_secs,
        )

    def require(self, *fields: str) -> None:
        """Raise ConfigurationError naming every listed field that is empty."""
        missing = [name for name in fields if not getattr(self, name)]
        if missing:
            raise ConfigurationError(missing)


DISPATCHER_REQUIRED = (
    "sqs_queue_url",
    "ecs_cluster",
    "ecs_task_definition",
    "ecs_container_name",
    "ecs_subnets",
    "ecs_security_group",
    "s3_destination_bucket",
)

TRANSCODER_REQUIRED = (
    "s3_source_bucket",
    "s3_source_key",
    "s3_destination_bucket",
)

SIGNER_REQUIRED = (
    "cloudfront_domain",
    "cloudfront_key_pair_id",
    "cloudfront_private_key",
)
