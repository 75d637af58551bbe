"""
Source key parsing and the HLS destination layout.

Source:       courses/{course_id}/videos/{filename}.{mp4|mov|avi}
Destination:  {course_id}/hls/{filename}/master.m3u8
              {course_id}/hls/{filename}/{label}/playlist.m3u8
              {course_id}/hls/{filename}/{label}/segment_000.ts
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from app.exceptions import InvalidAssetKeyError
from app.transcode.constants import MASTER_PLAYLIST_NAME, VARIANT_PLAYLIST_NAME

SOURCE_KEY_PATTERN = re.compile(
    r"^courses/(?P<course_id>[\w-]+)/videos/(?P<filename>[\w-]+)\.(?P<ext>mp4|mov|avi)$",
    re.IGNORECASE | re.ASCII,
)


def hls_base(course_id: str, filename: str) -> str:
    return f"{course_id}/hls/{filename}"


@dataclass(frozen=True)
class AssetKey:
    course_id: str
    filename: str
    extension: str

    @classmethod
    def parse(cls, key: str) -> AssetKey:
        match = SOURCE_KEY_PATTERN.match(key)
        if match is None:
            raise InvalidAssetKeyError(key)
        return cls(
            course_id=match.group("course_id"),
            filename=match.group("filename"),
            extension=match.group("ext").lower(),
        )

    @staticmethod
    def is_valid(key: str) -> bool:
        return SOURCE_KEY_PATTERN.match(key) is not None

    @property
    def hls_base(self) -> str:
        return hls_base(self.course_id, self.filename)

    @property
    def master_playlist_key(self) -> str:
        return f"{self.hls_base}/{MASTER_PLAYLIST_NAME}"

    def variant_base(self, label: str) -> str:
        return f"{self.hls_base}/{label}"

    def variant_playlist_key(self, label: str) -> str:
        return f"{self.variant_base(label)}/{VARIANT_PLAYLIST_NAME}"
