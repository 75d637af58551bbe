"""
Playback — Pydantic V2 request/response schemas.

JSON uses camelCase on the wire (``videoKey``, ``expiresIn``); Python code
uses snake_case.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ── Base ─────────────────────────────────────────────────────────────────────

class _Base(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ── Requests ─────────────────────────────────────────────────────────────────

class GenerateUrlRequest(_Base):
    """Sign one object key of the distribution."""
    video_key: str | None = Field(
        default=None,
        max_length=1024,
        description="Object key, e.g. course-1/hls/intro",
    )
    expires_in: int | None = Field(
        default=None,
        description="Validity in seconds (default 3600)",
    )


# ── Responses ────────────────────────────────────────────────────────────────

class SignedUrlData(_Base):
    url: str
    expires_in: int
    expires_at: datetime


class StreamData(_Base):
    master_playlist: str
    expires_in: int
    expires_at: datetime
    quality_playlist: str | None = None
    quality: str | None = None


class GenerateUrlResponse(_Base):
    success: bool = True
    data: SignedUrlData


class StreamResponse(_Base):
    success: bool = True
    data: StreamData
