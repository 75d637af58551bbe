"""SQS adapter: receive, acknowledge (delete) and visibility extension."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from app.aws import AwsClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueMessage:
    message_id: str
    body: str
    receipt_handle: str


class SqsQueue(AwsClient):
    service_name = "sqs"

    @property
    def queue_url(self) -> str:
        return self.settings.sqs_queue_url

    async def receive(self) -> list[QueueMessage]:
        resp = await self.client.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=self.settings.sqs_batch_size,
            WaitTimeSeconds=self.settings.sqs_wait_time_seconds,
        )
        return [
            QueueMessage(
                message_id=m.get("MessageId", ""),
                body=m.get("Body", ""),
                receipt_handle=m["ReceiptHandle"],
            )
            for m in resp.get("Messages", [])
        ]

    async def delete(self, message: QueueMessage) -> None:
        await self.client.delete_message(
            QueueUrl=self.queue_url,
            ReceiptHandle=message.receipt_handle,
        )

    async def extend_visibility(self, message: QueueMessage, timeout: int) -> None:
        await self.client.change_message_visibility(
            QueueUrl=self.queue_url,
            ReceiptHandle=message.receipt_handle,
            VisibilityTimeout=timeout,
        )
