"""CloudFront signed URL generation.

Pure utility — no FastAPI imports. Requires the ``cryptography`` package.
"""

from __future__ import annotations

import base64
import json
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from app.config import SIGNER_REQUIRED

if TYPE_CHECKING:
    from app.config import Settings

_PEM_MARKER = "-----BEGIN"


def load_private_key(value: str) -> object:
    """Load an RSA private key from PEM text or from a path to a PEM file."""
    if value.lstrip().startswith(_PEM_MARKER):
        # Env files often carry the PEM with escaped newlines.
        pem_data = value.replace("\\n", "\n").encode()
    else:
        pem_data = Path(value).read_bytes()
    return serialization.load_pem_private_key(pem_data, password=None)


def _rsa_sign(message: bytes, private_key: object) -> bytes:
    return private_key.sign(message, padding.PKCS1v15(), hashes.SHA1())  # type: ignore[union-attr]


def _make_policy(url: str, epoch: int) -> str:
    policy = {
        "Statement": [{
            "Resource": url,
            "Condition": {"DateLessThan": {"AWS:EpochTime": epoch}},
        }],
    }
    return json.dumps(policy, separators=(",", ":"))


def _b64_cf(data: bytes) -> str:
    """CloudFront-safe base64: replace ``+``, ``=``, ``/``."""
    return (
        base64.b64encode(data)
        .decode()
        .replace("+", "-")
        .replace("=", "_")
        .replace("/", "~")
    )


def _base_url(domain: str) -> str:
    domain = domain.strip().rstrip("/")
    if "://" not in domain:
        domain = f"https://{domain}"
    return domain


class UrlSigner:
    """Signs distribution URLs with a canned policy for one CloudFront key pair."""

    def __init__(self, domain: str, key_pair_id: str, private_key: object) -> None:
        self.base_url = _base_url(domain)
        self.key_pair_id = key_pair_id
        self._private_key = private_key

    @classmethod
    def from_settings(cls, settings: Settings) -> UrlSigner:
        settings.require(*SIGNER_REQUIRED)
        return cls(
            domain=settings.cloudfront_domain,
            key_pair_id=settings.cloudfront_key_pair_id,
            private_key=load_private_key(settings.cloudfront_private_key),
        )

    def build_url(self, key: str) -> str:
        return f"{self.base_url}/{key.lstrip('/')}"

    def sign(self, resource_url: str, expires_at: datetime) -> str:
        epoch = int(expires_at.timestamp())
        policy = _make_policy(resource_url, epoch)
        signature = _rsa_sign(policy.encode(), self._private_key)
        sep = "&" if "?" in resource_url else "?"
        return (
            f"{resource_url}{sep}"
            f"Expires={epoch}&"
            f"Signature={_b64_cf(signature)}&"
            f"Key-Pair-Id={self.key_pair_id}"
        )

    def sign_key(self, key: str, expires_at: datetime) -> str:
        return self.sign(self.build_url(key), expires_at)
