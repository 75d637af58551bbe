from typing import Any

from pydantic import BaseModel, ConfigDict, Field

S3_TEST_EVENT = "s3:TestEvent"


class S3Bucket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)


class S3Object(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str = Field(min_length=1)
    size: int | None = None


class S3Entity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    bucket: S3Bucket
    object: S3Object


class S3EventRecord(BaseModel):
    """One record of an S3 event notification."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    event_name: str | None = Field(default=None, alias="eventName")
    s3: S3Entity


class S3EventNotification(BaseModel):
    """SQS message body: S3 ObjectCreated notification.

    Records stay raw here; each one is validated on its own with S3EventRecord.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    records: list[Any] = Field(alias="Records")


def is_test_event(payload: dict) -> bool:
    """S3 sends ``{"Service": ..., "Event": "s3:TestEvent"}`` when a notification is configured."""
    return "Service" in payload and payload.get("Event") == S3_TEST_EVENT
