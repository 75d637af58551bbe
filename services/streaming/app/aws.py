"""Shared aioboto3 plumbing for the S3, SQS and ECS adapters."""
from __future__ import annotations

from contextlib import AsyncExitStack
from typing import Any

import aioboto3

from app.config import Settings


def aws_session(settings: Settings) -> aioboto3.Session:
    # Empty credentials fall through to the default chain (ECS task role).
    return aioboto3.Session(
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        region_name=settings.aws_region,
    )


class AwsClient:
    """Holds one aioboto3 client for the lifetime of an ``async with`` block."""

    service_name: str = ""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._session = aws_session(settings)
        self._stack: AsyncExitStack | None = None
        self._client: Any = None

    async def __aenter__(self):
        self._stack = AsyncExitStack()
        self._client = await self._stack.enter_async_context(
            self._session.client(self.service_name)
        )
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._stack is not None:
            await self._stack.aclose()
        self._stack = None
        self._client = None

    @property
    def client(self) -> Any:
        if self._client is None:
            raise RuntimeError(f"{type(self).__name__} used outside of 'async with'")
        return self._client
