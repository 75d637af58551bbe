"""
Playback — FastAPI dependencies.

The signer is built once in the app lifespan and kept on ``app.state``.
"""
from fastapi import Request

from app.playback.cloudfront import UrlSigner


def get_signer(request: Request) -> UrlSigner:
    return request.app.state.signer
