"""DynamoDB access for the Submissions table."""

from __future__ import annotations

import logging
from decimal import DecimalException
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from shared.constants import AWS_REGION, DYNAMODB_ENDPOINT_URL, SUBMISSIONS_TABLE_NAME
from shared.error_handling import PersistenceError

logger = logging.getLogger(__name__)


def build_table(table_name: str = SUBMISSIONS_TABLE_NAME) -> Any:
    dynamodb = boto3.resource(
        "dynamodb",
        region_name=AWS_REGION,
        endpoint_url=DYNAMODB_ENDPOINT_URL or None,
    )
    return dynamodb.Table(table_name)


class SubmissionTable:
    """insert/find/delete for submission records keyed by ``submissionId``."""

    def __init__(self, table: Any) -> None:
        self._table = table

    def insert(self, item: dict[str, Any]) -> None:
        """Write a new record; never overwrites an existing submissionId."""
        try:
            self._table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(submissionId)",
            )
        except ClientError as exc:
            code = exc.response["Error"]["Code"]
            if code == "ConditionalCheckFailedException":
                raise PersistenceError(
                    f"Submission '{item['submissionId']}' already exists"
                ) from exc
            logger.error("put_item failed: %s", code)
            raise PersistenceError("Unable to save submission") from exc
        except BotoCoreError as exc:
            raise PersistenceError("Unable to save submission") from exc
        except DecimalException as exc:
            raise PersistenceError("Submission has a number DynamoDB cannot store") from exc
        logger.info("Put submission: submissionId=%s", item["submissionId"])

    def get(self, submission_id: str) -> dict[str, Any] | None:
        response = self._table.get_item(Key={"submissionId": submission_id})
        return response.get("Item")  # type: ignore[no-any-return]

    def delete(self, submission_id: str) -> None:
        self._table.delete_item(Key={"submissionId": submission_id})
        logger.info("Deleted submission: submissionId=%s", submission_id)
