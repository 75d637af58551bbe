"""
Playback — controller layer.

Receives validated input from router, calls service functions, composes
the response. Domain errors become HTTP exceptions here.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.exceptions import (
    InvalidExpiry,
    InvalidQuality,
    InvalidVideoKey,
    InvalidVideoKeyError,
    SignedUrlError,
    UnsupportedQualityError,
    VideoKeyRequired,
)
from app.playback import service
from app.playback.schemas import (
    GenerateUrlRequest,
    GenerateUrlResponse,
    SignedUrlData,
    StreamData,
    StreamResponse,
)
from app.transcode.constants import QUALITY_LABELS

if TYPE_CHECKING:
    from app.playback.cloudfront import UrlSigner

logger = logging.getLogger(__name__)


def generate_url(body: GenerateUrlRequest, signer: UrlSigner) -> GenerateUrlResponse:
    if not body.video_key:
        raise VideoKeyRequired()
    expires_in = service.DEFAULT_EXPIRES_IN if body.expires_in is None else body.expires_in
    if expires_in <= 0:
        raise InvalidExpiry()

    try:
        signed = service.generate_url(body.video_key, signer, expires_in)
    except InvalidVideoKeyError as exc:
        raise InvalidVideoKey() from exc
    except Exception as exc:
        logger.exception("Error generating signed URL for %s", body.video_key)
        raise SignedUrlError() from exc

    return GenerateUrlResponse(
        data=SignedUrlData(
            url=signed.url,
            expires_in=signed.expires_in,
            expires_at=signed.expires_at,
        ),
    )


def stream_urls(
    course_id: str,
    video_id: str,
    quality: str | None,
    signer: UrlSigner,
) -> StreamResponse:
    try:
        urls = service.generate_stream_urls(course_id, video_id, signer, quality)
    except InvalidVideoKeyError as exc:
        raise InvalidVideoKey("courseId or videoId") from exc
    except UnsupportedQualityError as exc:
        raise InvalidQuality(list(QUALITY_LABELS)) from exc
    except Exception as exc:
        logger.exception("Error generating streaming URLs for %s/%s", course_id, video_id)
        raise SignedUrlError("streaming URLs") from exc

    return StreamResponse(
        data=StreamData(
            master_playlist=urls.master_playlist,
            expires_in=urls.expires_in,
            expires_at=urls.expires_at,
            quality_playlist=urls.quality_playlist,
            quality=urls.quality,
        ),
    )


def player_html(course_id: str, video_id: str, signer: UrlSigner) -> str:
    try:
        return service.render_player_html(course_id, video_id, signer)
    except InvalidVideoKeyError as exc:
        raise InvalidVideoKey("courseId or videoId") from exc
    except Exception as exc:
        logger.exception("Error generating player for %s/%s", course_id, video_id)
        raise SignedUrlError("video player") from exc
