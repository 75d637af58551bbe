"""
Event dispatcher. Turns S3 upload notifications on SQS into ECS transcode tasks.

Per message:
  Received → Validating → {Skipped | Dispatching} → {Acknowledged | VisibilityExtended}

A message is deleted only after every accepted record has a running task.
Any unrecovered error extends the message visibility so SQS redelivers it
later; the message is never deleted in that case. Messages of one batch are
independent: a failing message never affects its siblings.
"""
from __future__ import annotations

import asyncio
import enum
import functools
import json
import logging
from typing import TYPE_CHECKING
from urllib.parse import unquote_plus

from pydantic import ValidationError

from app.exceptions import InvalidNotificationError
from app.transcode.keys import AssetKey
from shared.events.schemas import S3EventNotification, S3EventRecord, is_test_event
from shared.utils.retry import RetryPolicy, retry_async

if TYPE_CHECKING:
    from app.config import Settings
    from app.ecs import EcsLauncher
    from app.sqs import QueueMessage, SqsQueue

logger = logging.getLogger(__name__)


class MessageState(str, enum.Enum):
    ACKNOWLEDGED = "ACKNOWLEDGED"
    VISIBILITY_EXTENDED = "VISIBILITY_EXTENDED"


def extract_records(body: str) -> list[tuple[str, str]]:
    """Return accepted ``(bucket, key)`` pairs from a notification body.

    The S3 test event yields no records. Keys outside the course video
    layout and malformed records are logged and dropped. Raises
    InvalidNotificationError for bodies that are not S3 event
    notifications at all.
    """
    if not body or not body.strip():
        raise InvalidNotificationError("Empty message body")
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise InvalidNotificationError(f"Message body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidNotificationError("Message body is not a JSON object")

    if is_test_event(payload):
        logger.info("S3 test event received, discarding")
        return []

    try:
        event = S3EventNotification.model_validate(payload)
    except ValidationError as exc:
        raise InvalidNotificationError(f"Not an S3 event notification: {exc}") from exc

    accepted: list[tuple[str, str]] = []
    for index, raw in enumerate(event.records):
        try:
            record = S3EventRecord.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Malformed S3 record #%d, skipping: %s", index, exc)
            continue
        # S3 URL-encodes object keys in notifications.
        key = unquote_plus(record.s3.object.key)
        if not AssetKey.is_valid(key):
            logger.warning("Invalid S3 key format: %s, skipping...", key)
            continue
        accepted.append((record.s3.bucket.name, key))
    return accepted


class Dispatcher:
    def __init__(
        self,
        queue: SqsQueue,
        launcher: EcsLauncher,
        *,
        launch_policy: RetryPolicy,
        visibility_timeout: int = 900,
        error_pause: float = 1.0,
        sleep=asyncio.sleep,
    ) -> None:
        self.queue = queue
        self.launcher = launcher
        self.launch_policy = launch_policy
        self.visibility_timeout = visibility_timeout
        self.error_pause = error_pause
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, queue: SqsQueue, launcher: EcsLauncher) -> Dispatcher:
        return cls(
            queue,
            launcher,
            launch_policy=settings.launch_retry_policy,
            visibility_timeout=settings.sqs_visibility_timeout,
            error_pause=settings.dispatcher_error_pause_secs,
        )

    async def process_message(self, message: QueueMessage) -> MessageState:
        """Dispatch every record of one message, then acknowledge it.

        On failure the visibility is extended and the original error re-raised.
        """
        logger.info("Processing message: %s", message.message_id)
        try:
            try:
                records = extract_records(message.body)
            except InvalidNotificationError as exc:
                # Redelivery cannot fix a malformed body.
                logger.warning("Skipping message %s: %s", message.message_id, exc)
                records = []

            for bucket, key in records:
                logger.info("Launching ECS task for %s/%s", bucket, key)
                await retry_async(
                    functools.partial(self.launcher.launch, bucket, key),
                    self.launch_policy,
                    description=f"launch task for {key}",
                    sleep=self._sleep,
                )

            await self.queue.delete(message)
        except Exception as exc:
            logger.error("Error processing message %s: %s", message.message_id, exc)
            await self._extend_visibility(message)
            raise

        logger.info("Successfully processed message: %s", message.message_id)
        return MessageState.ACKNOWLEDGED

    async def _extend_visibility(self, message: QueueMessage) -> None:
        try:
            await self.queue.extend_visibility(message, self.visibility_timeout)
            logger.info(
                "Extended visibility of message %s by %ds",
                message.message_id, self.visibility_timeout,
            )
        except Exception:
            logger.exception("Failed to extend message visibility for %s", message.message_id)

    async def process_batch(self, messages: list[QueueMessage]) -> list[MessageState]:
        """Process messages concurrently. Never raises for a single message failure."""
        outcomes = await asyncio.gather(
            *(self.process_message(m) for m in messages),
            return_exceptions=True,
        )
        states: list[MessageState] = []
        for message, outcome in zip(messages, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Failed to process message %s: %s", message.message_id, outcome)
                states.append(MessageState.VISIBILITY_EXTENDED)
            else:
                states.append(outcome)
        return states

    async def poll_once(self) -> list[MessageState]:
        messages = await self.queue.receive()
        if not messages:
            logger.debug("No messages in queue")
            return []
        logger.info("Received %d messages", len(messages))
        return await self.process_batch(messages)

    async def run(self, stop: asyncio.Event) -> None:
        """Poll until ``stop`` is set. Queue errors are logged and followed by a short pause."""
        logger.info("Starting SQS message processor...")
        while not stop.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Error in message processing loop")
                await self._sleep(self.error_pause)
        logger.info("Dispatcher stopped")
