"""
Transcoding — job and result types passed between pipeline stages.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from app.transcode.constants import VARIANTS, VariantSpec
from app.transcode.keys import AssetKey


@dataclass(frozen=True)
class TranscodeJob:
    asset: AssetKey
    source_bucket: str
    source_key: str
    destination_bucket: str
    variants: tuple[VariantSpec, ...] = VARIANTS

    @classmethod
    def from_source(
        cls,
        source_bucket: str,
        source_key: str,
        destination_bucket: str,
        variants: tuple[VariantSpec, ...] = VARIANTS,
    ) -> TranscodeJob:
        """Build a job from an upload location. Raises InvalidAssetKeyError for foreign keys."""
        return cls(
            asset=AssetKey.parse(source_key),
            source_bucket=source_bucket,
            source_key=source_key,
            destination_bucket=destination_bucket,
            variants=variants,
        )

    @property
    def canary(self) -> VariantSpec:
        # Lowest quality is the cheapest encode.
        return self.variants[-1]

    @property
    def remaining(self) -> tuple[VariantSpec, ...]:
        return self.variants[:-1]


@dataclass
class VariantArtifacts:
    """Local files produced by one encoder run."""
    spec: VariantSpec
    playlist: Path
    segments: list[Path] = field(default_factory=list)


@dataclass
class VariantResult:
    spec: VariantSpec
    manifest_key: str
    uploaded_keys: list[str] = field(default_factory=list)
    skipped: bool = False
