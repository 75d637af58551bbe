import base64
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from app.exceptions import ConfigurationError, InvalidVideoKeyError, UnsupportedQualityError
from app.playback import service
from app.playback.cloudfront import UrlSigner, load_private_key

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def _cf_b64decode(value: str) -> bytes:
    return base64.b64decode(value.replace("-", "+").replace("_", "=").replace("~", "/"))


def _pem(private_key) -> str:
    return private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


class NeverSign:
    def sign_key(self, key, expires_at):
        raise AssertionError("signer must not be called")


# ── Signer ───────────────────────────────────────────────────────────────────

def test_signature_verifies_against_canned_policy(signer, private_key) -> None:
    expires_at = NOW + timedelta(hours=1)
    url = signer.sign_key("course-1/hls/intro/master.m3u8", expires_at)

    parts = urlsplit(url)
    resource = f"{parts.scheme}://{parts.netloc}{parts.path}"
    assert resource == "https://d111111abcdef8.cloudfront.net/course-1/hls/intro/master.m3u8"

    query = parse_qs(parts.query)
    epoch = int(expires_at.timestamp())
    assert query["Expires"] == [str(epoch)]
    assert query["Key-Pair-Id"] == ["K2JCJMDEHXQW5F"]

    policy = json.dumps(
        {"Statement": [{"Resource": resource, "Condition": {"DateLessThan": {"AWS:EpochTime": epoch}}}]},
        separators=(",", ":"),
    )
    signature = _cf_b64decode(query["Signature"][0])
    private_key.public_key().verify(signature, policy.encode(), padding.PKCS1v15(), hashes.SHA1())


def test_signature_has_no_unsafe_characters(signer) -> None:
    url = signer.sign_key("a/b", NOW)
    signature = parse_qs(urlsplit(url).query)["Signature"][0]
    assert not set("+=/") & set(signature)


def test_build_url_normalizes_domain(private_key) -> None:
    signer = UrlSigner("https://cdn.example.com/", "KP", private_key)
    assert signer.build_url("/c1/hls/v1/master.m3u8") == "https://cdn.example.com/c1/hls/v1/master.m3u8"


def test_load_private_key_from_text_and_file(private_key, tmp_path: Path) -> None:
    pem = _pem(private_key)
    path = tmp_path / "cf.pem"
    path.write_text(pem)

    expected = private_key.public_key().public_numbers()
    assert load_private_key(pem).public_key().public_numbers() == expected
    assert load_private_key(pem.replace("\n", "\\n")).public_key().public_numbers() == expected
    assert load_private_key(str(path)).public_key().public_numbers() == expected


def test_from_settings_requires_cloudfront_values(settings) -> None:
    with pytest.raises(ConfigurationError) as info:
        UrlSigner.from_settings(settings)
    assert info.value.missing == ["cloudfront_private_key"]


def test_from_settings_builds_signer(settings, private_key) -> None:
    configured = settings.model_copy(update={"cloudfront_private_key": _pem(private_key)})
    signer = UrlSigner.from_settings(configured)
    assert signer.base_url == "https://d111111abcdef8.cloudfront.net"
    assert signer.key_pair_id == "K2JCJMDEHXQW5F"


# ── generate_url ─────────────────────────────────────────────────────────────

def test_generate_url_sets_expiry(signer) -> None:
    signed = service.generate_url("course-1/hls/intro", signer, 600, now=NOW)
    assert signed.expires_in == 600
    assert signed.expires_at == NOW + timedelta(seconds=600)
    assert signed.url.startswith("https://d111111abcdef8.cloudfront.net/course-1/hls/intro?Expires=")


def test_generate_url_default_expiry_is_one_hour(signer) -> None:
    before = datetime.now(timezone.utc)
    signed = service.generate_url("course-1/hls/intro", signer)
    assert signed.expires_in == 3600
    delta = signed.expires_at - (before + timedelta(seconds=3600))
    assert timedelta(0) <= delta < timedelta(seconds=1)


@pytest.mark.parametrize("key", ["", "../etc/passwd", "a b", "video.mp4", "a?b=c", "ключ"])
def test_generate_url_rejects_bad_keys_before_signing(key: str) -> None:
    with pytest.raises(InvalidVideoKeyError):
        service.generate_url(key, NeverSign())


def test_generate_url_rejects_non_positive_expiry(signer) -> None:
    with pytest.raises(ValueError):
        service.generate_url("course-1/hls/intro", signer, 0)


# ── Streams and player ───────────────────────────────────────────────────────

def test_stream_urls_master_only(signer) -> None:
    urls = service.generate_stream_urls("course-1", "intro", signer, now=NOW)
    assert urls.master_playlist.startswith(
        "https://d111111abcdef8.cloudfront.net/course-1/hls/intro/master.m3u8?"
    )
    assert urls.quality is None
    assert urls.quality_playlist is None
    assert urls.expires_at == NOW + timedelta(hours=1)


def test_stream_urls_with_quality(signer) -> None:
    urls = service.generate_stream_urls("course-1", "intro", signer, "720p", now=NOW)
    assert urls.quality == "720p"
    assert urls.quality_playlist.startswith(
        "https://d111111abcdef8.cloudfront.net/course-1/hls/intro/720p/playlist.m3u8?"
    )


def test_stream_urls_reject_unknown_quality() -> None:
    with pytest.raises(UnsupportedQualityError):
        service.generate_stream_urls("course-1", "intro", NeverSign(), "4k")


@pytest.mark.parametrize("course_id,video_id", [("c1/x", "v1"), ("c1", "v1.mp4"), ("", "v1")])
def test_stream_urls_reject_bad_ids(course_id: str, video_id: str) -> None:
    with pytest.raises(InvalidVideoKeyError):
        service.generate_stream_urls(course_id, video_id, NeverSign())


def test_player_html_embeds_escaped_master_url(signer) -> None:
    page = service.render_player_html("course-1", "intro", signer, now=NOW)
    assert "<title>HLS Player - course-1/intro</title>" in page
    assert "course-1/hls/intro/master.m3u8?Expires=" in page
    assert "&amp;Signature=" in page
    assert "videojs('player'" in page


def test_short_expiry_matches_request_time(signer) -> None:
    requested_at = datetime.now(timezone.utc)
    signed = service.generate_url("course-1/hls/intro", signer, 60)
    assert abs(signed.expires_at - (requested_at + timedelta(seconds=60))) < timedelta(seconds=1)
