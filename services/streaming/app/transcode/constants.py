"""
Transcoding — static constants and variant profiles.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class VariantSpec:
    """One HLS rendition: label, frame size and target video bitrate."""
    name: str
    width: int
    height: int
    bitrate_kbps: int

    @property
    def bandwidth(self) -> int:
        """Bits per second, as advertised in the master playlist."""
        return self.bitrate_kbps * 1000

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    @property
    def ffmpeg_bitrate(self) -> str:
        return f"{self.bitrate_kbps}k"


# Highest to lowest quality. The last entry is the canary.
VARIANTS: tuple[VariantSpec, ...] = (
    VariantSpec("1080p", 1920, 1080, 5000),
    VariantSpec("720p", 1280, 720, 2800),
    VariantSpec("480p", 854, 480, 1400),
    VariantSpec("360p", 640, 360, 800),
)

QUALITY_LABELS: tuple[str, ...] = tuple(v.name for v in VARIANTS)

MASTER_PLAYLIST_NAME = "master.m3u8"
VARIANT_PLAYLIST_NAME = "playlist.m3u8"
SEGMENT_PATTERN = "segment_%03d.ts"

# H.264 High profile + AAC-LC
HLS_CODECS = "avc1.640028,mp4a.40.2"

CONTENT_TYPES = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/MP2T",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Transcoded output is immutable once written.
UPLOAD_CACHE_CONTROL = "max-age=31536000"
TRANSCODER_VERSION = "1.0.0"

AUDIO_BITRATE = "128k"
AUDIO_CHANNELS = 2
AUDIO_SAMPLE_RATE = 44100
