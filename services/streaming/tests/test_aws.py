from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from app.ecs import EcsLauncher, build_run_task_params
from app.exceptions import TaskLaunchError
from app.s3 import S3Storage
from app.sqs import QueueMessage, SqsQueue


def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeS3Client:
    def __init__(self, head_error: ClientError | None = None) -> None:
        self.head_error = head_error
        self.uploaded: list[dict] = []

    async def head_object(self, Bucket: str, Key: str) -> dict:
        if self.head_error is not None:
            raise self.head_error
        return {"ContentLength": 10}

    async def upload_file(self, filename: str, bucket: str, key: str, ExtraArgs: dict) -> None:
        self.uploaded.append({"filename": filename, "bucket": bucket, "key": key, **ExtraArgs})


def _store(settings, client) -> S3Storage:
    store = S3Storage(settings)
    store._client = client
    return store


# ── S3 ───────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_exists_true_when_head_succeeds(settings) -> None:
    assert await _store(settings, FakeS3Client()).exists("hls-output", "a/master.m3u8") is True


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
async def test_exists_false_only_for_not_found(settings, code: str) -> None:
    store = _store(settings, FakeS3Client(head_error=_client_error(code)))
    assert await store.exists("hls-output", "a/master.m3u8") is False


@pytest.mark.asyncio
async def test_exists_propagates_other_errors(settings) -> None:
    store = _store(settings, FakeS3Client(head_error=_client_error("403")))
    with pytest.raises(ClientError):
        await store.exists("hls-output", "a/master.m3u8")


@pytest.mark.asyncio
async def test_upload_sets_cache_and_metadata(settings, tmp_path: Path) -> None:
    client = FakeS3Client()
    path = tmp_path / "playlist.m3u8"
    path.write_text("#EXTM3U\n")
    await _store(settings, client).upload(path, "hls-output", "c1/hls/v1/720p/playlist.m3u8", "application/vnd.apple.mpegurl")

    (call,) = client.uploaded
    assert call["key"] == "c1/hls/v1/720p/playlist.m3u8"
    assert call["ContentType"] == "application/vnd.apple.mpegurl"
    assert call["CacheControl"] == "max-age=31536000"
    assert call["Metadata"]["transcoder-version"] == "1.0.0"
    assert "transcoded-date" in call["Metadata"]


def test_client_outside_context_raises(settings) -> None:
    with pytest.raises(RuntimeError):
        S3Storage(settings).client


# ── SQS ──────────────────────────────────────────────────────────────────────

class FakeSqsClient:
    def __init__(self, messages: list[dict]) -> None:
        self.messages = messages
        self.calls: list[tuple[str, dict]] = []

    async def receive_message(self, **kwargs) -> dict:
        self.calls.append(("receive_message", kwargs))
        return {"Messages": self.messages} if self.messages else {}

    async def delete_message(self, **kwargs) -> None:
        self.calls.append(("delete_message", kwargs))

    async def change_message_visibility(self, **kwargs) -> None:
        self.calls.append(("change_message_visibility", kwargs))


@pytest.mark.asyncio
async def test_receive_uses_batch_settings(settings) -> None:
    client = FakeSqsClient([{"MessageId": "m1", "Body": "{}", "ReceiptHandle": "r1"}])
    queue = SqsQueue(settings)
    queue._client = client

    messages = await queue.receive()

    assert messages == [QueueMessage(message_id="m1", body="{}", receipt_handle="r1")]
    name, kwargs = client.calls[0]
    assert kwargs["MaxNumberOfMessages"] == 5
    assert kwargs["WaitTimeSeconds"] == 5
    assert kwargs["QueueUrl"] == settings.sqs_queue_url


@pytest.mark.asyncio
async def test_empty_receive_returns_no_messages(settings) -> None:
    queue = SqsQueue(settings)
    queue._client = FakeSqsClient([])
    assert await queue.receive() == []


@pytest.mark.asyncio
async def test_delete_and_extend_use_receipt_handle(settings) -> None:
    client = FakeSqsClient([])
    queue = SqsQueue(settings)
    queue._client = client
    message = QueueMessage(message_id="m1", body="{}", receipt_handle="r1")

    await queue.delete(message)
    await queue.extend_visibility(message, 900)

    assert client.calls[0] == ("delete_message", {"QueueUrl": settings.sqs_queue_url, "ReceiptHandle": "r1"})
    assert client.calls[1][1]["VisibilityTimeout"] == 900


# ── ECS ──────────────────────────────────────────────────────────────────────

class FakeEcsClient:
    def __init__(self, response: dict) -> None:
        self.response = response
        self.params: dict | None = None

    async def run_task(self, **params) -> dict:
        self.params = params
        return self.response


def test_run_task_params(settings) -> None:
    params = build_run_task_params(settings, "uploads", "courses/c1/videos/v1.mp4")

    assert params["cluster"] == "transcode"
    assert params["taskDefinition"] == "hls-transcoder:3"
    assert params["launchType"] == "FARGATE"
    vpc = params["networkConfiguration"]["awsvpcConfiguration"]
    assert vpc == {"subnets": ["subnet-a", "subnet-b"], "securityGroups": ["sg-123"], "assignPublicIp": "ENABLED"}
    (override,) = params["overrides"]["containerOverrides"]
    assert override["name"] == "transcoder"
    assert {e["name"]: e["value"] for e in override["environment"]} == {
        "S3_SOURCE_BUCKET": "uploads",
        "S3_DESTINATION_BUCKET": "hls-output",
        "S3_SOURCE_KEY": "courses/c1/videos/v1.mp4",
    }


@pytest.mark.asyncio
async def test_launch_returns_task_arn(settings) -> None:
    launcher = EcsLauncher(settings)
    launcher._client = FakeEcsClient({"tasks": [{"taskArn": "arn:task/1"}], "failures": []})
    assert await launcher.launch("uploads", "courses/c1/videos/v1.mp4") == "arn:task/1"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        {"tasks": [], "failures": [{"reason": "RESOURCE:MEMORY"}]},
        {"tasks": []},
    ],
)
async def test_launch_without_task_raises(settings, response: dict) -> None:
    launcher = EcsLauncher(settings)
    launcher._client = FakeEcsClient(response)
    with pytest.raises(TaskLaunchError):
        await launcher.launch("uploads", "courses/c1/videos/v1.mp4")
