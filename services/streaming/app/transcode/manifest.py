"""HLS master playlist assembly."""
from __future__ import annotations

from collections.abc import Sequence

from app.transcode.constants import HLS_CODECS, VARIANT_PLAYLIST_NAME, VariantSpec


def build_master_playlist(variants: Sequence[VariantSpec]) -> str:
    """Return master playlist text with one stream entry per variant, in the given order."""
    if not variants:
        raise ValueError("Master playlist needs at least one variant")

    seen: set[str] = set()
    for spec in variants:
        if spec.name in seen:
            raise ValueError(f"Duplicate variant in master playlist: {spec.name}")
        seen.add(spec.name)

    lines = [
        "#EXTM3U",
        "#EXT-X-VERSION:3",
        "#EXT-X-INDEPENDENT-SEGMENTS",
        "",
    ]
    for spec in variants:
        lines.append(
            f"#EXT-X-STREAM-INF:BANDWIDTH={spec.bandwidth},"
            f"RESOLUTION={spec.resolution},"
            f'CODECS="{HLS_CODECS}"'
        )
        lines.append(f"{spec.name}/{VARIANT_PLAYLIST_NAME}")
    return "\n".join(lines) + "\n"
