"""
Playback — business logic.

Signs CloudFront URLs for transcoded HLS packages. Keys and ids are
validated before the signer is touched. Pure functions: the signer is
passed in, the clock is injectable.
"""
from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from app.exceptions import InvalidVideoKeyError, UnsupportedQualityError
from app.transcode.constants import MASTER_PLAYLIST_NAME, QUALITY_LABELS, VARIANT_PLAYLIST_NAME
from app.transcode.keys import hls_base

if TYPE_CHECKING:
    from app.playback.cloudfront import UrlSigner

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600  # 1 hour

VIDEO_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_/-]+$")


@dataclass(frozen=True)
class SignedUrl:
    url: str
    expires_in: int
    expires_at: datetime


@dataclass(frozen=True)
class StreamUrls:
    master_playlist: str
    expires_in: int
    expires_at: datetime
    quality: str | None = None
    quality_playlist: str | None = None


def is_valid_key(key: str | None) -> bool:
    return bool(key) and VIDEO_KEY_PATTERN.match(key) is not None


def _expires_at(expires_in: int, now: datetime | None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(seconds=expires_in)


def generate_url(
    video_key: str,
    signer: UrlSigner,
    expires_in: int = DEFAULT_EXPIRES_IN,
    *,
    now: datetime | None = None,
) -> SignedUrl:
    """Sign ``{distribution}/{video_key}`` valid for ``expires_in`` seconds."""
    if not is_valid_key(video_key):
        raise InvalidVideoKeyError(video_key)
    if expires_in <= 0:
        raise ValueError("expires_in must be positive")

    expires_at = _expires_at(expires_in, now)
    url = signer.sign_key(video_key, expires_at)
    logger.info("Signed URL for %s (expires %s)", video_key, expires_at.isoformat())
    return SignedUrl(url=url, expires_in=expires_in, expires_at=expires_at)


def generate_stream_urls(
    course_id: str,
    video_id: str,
    signer: UrlSigner,
    quality: str | None = None,
    *,
    expires_in: int = DEFAULT_EXPIRES_IN,
    now: datetime | None = None,
) -> StreamUrls:
    """Signed master playlist URL, plus one quality playlist when ``quality`` is given."""
    for value in (course_id, video_id):
        if not is_valid_key(value) or "/" in value:
            raise InvalidVideoKeyError(value)
    if quality is not None and quality not in QUALITY_LABELS:
        raise UnsupportedQualityError(quality)

    base = hls_base(course_id, video_id)
    expires_at = _expires_at(expires_in, now)
    master = signer.sign_key(f"{base}/{MASTER_PLAYLIST_NAME}", expires_at)

    quality_playlist = None
    if quality is not None:
        quality_playlist = signer.sign_key(f"{base}/{quality}/{VARIANT_PLAYLIST_NAME}", expires_at)

    return StreamUrls(
        master_playlist=master,
        expires_in=expires_in,
        expires_at=expires_at,
        quality=quality,
        quality_playlist=quality_playlist,
    )


_PLAYER_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <title>HLS Player - {title}</title>
    <link href="https://vjs.zencdn.net/8.6.1/video-js.css" rel="stylesheet" />
    <script src="https://vjs.zencdn.net/8.6.1/video.min.js"></script>
    <style>
        body {{ margin: 0; background: #000; }}
        .video-container {{
            width: 100vw;
            height: 100vh;
            display: flex;
            justify-content: center;
            align-items: center;
        }}
        .video-js {{ width: 100%; height: 100%; max-width: 1280px; max-height: 720px; }}
    </style>
</head>
<body>
    <div class="video-container">
        <video-js id="player"
            class="vjs-default-skin vjs-big-play-centered"
            controls
            preload="auto">
            <source src="{source}" type="application/x-mpegURL">
        </video-js>
    </div>
    <script>
        const player = videojs('player', {{
            fluid: true,
            html5: {{
                vhs: {{
                    enableLowInitialPlaylist: true,
                    smoothQualityChange: true,
                    overrideNative: true
                }}
            }}
        }});
    </script>
</body>
</html>
"""


def render_player_html(
    course_id: str,
    video_id: str,
    signer: UrlSigner,
    *,
    now: datetime | None = None,
) -> str:
    urls = generate_stream_urls(course_id, video_id, signer, now=now)
    return _PLAYER_TEMPLATE.format(
        title=html.escape(f"{course_id}/{video_id}"),
        source=html.escape(urls.master_playlist, quote=True),
    )
