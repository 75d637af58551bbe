"""
ECS adapter: launch one Fargate transcode task per accepted upload.

The task reads its job from the container environment
(S3_SOURCE_BUCKET, S3_DESTINATION_BUCKET, S3_SOURCE_KEY).
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.aws import AwsClient
from app.exceptions import TaskLaunchError

if TYPE_CHECKING:
    from app.config import Settings

logger = logging.getLogger(__name__)


def build_run_task_params(settings: Settings, source_bucket: str, source_key: str) -> dict:
    return {
        "cluster": settings.ecs_cluster,
        "taskDefinition": settings.ecs_task_definition,
        "launchType": settings.ecs_launch_type,
        "count": 1,
        "networkConfiguration": {
            "awsvpcConfiguration": {
                "subnets": settings.ecs_subnets_list,
                "securityGroups": [settings.ecs_security_group],
                "assignPublicIp": "ENABLED" if settings.ecs_assign_public_ip else "DISABLED",
            }
        },
        "overrides": {
            "containerOverrides": [
                {
                    "name": settings.ecs_container_name,
                    "environment": [
                        {"name": "S3_SOURCE_BUCKET", "value": source_bucket},
                        {"name": "S3_DESTINATION_BUCKET", "value": settings.s3_destination_bucket},
                        {"name": "S3_SOURCE_KEY", "value": source_key},
                    ],
                }
            ]
        },
    }


class EcsLauncher(AwsClient):
    service_name = "ecs"

    async def launch(self, source_bucket: str, source_key: str) -> str:
        """Start the transcode task. Returns the task ARN."""
        params = build_run_task_params(self.settings, source_bucket, source_key)
        resp = await self.client.run_task(**params)

        # RunTask reports capacity/placement problems in the body, not as an exception.
        failures = resp.get("failures") or []
        tasks = resp.get("tasks") or []
        if failures or not tasks:
            reasons = ", ".join(f.get("reason", "unknown") for f in failures) or "no task started"
            raise TaskLaunchError(f"ECS RunTask failed for {source_key}: {reasons}")

        task_arn = tasks[0].get("taskArn", "")
        logger.info("Launched ECS task %s for s3://%s/%s", task_arn, source_bucket, source_key)
        return task_arn
