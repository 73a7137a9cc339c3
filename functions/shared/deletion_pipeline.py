"""Delete a submission's stored assets, then the submission record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from aws_lambda_powertools import Logger
from shared.dynamodb_utils import SubmissionTable
from shared.error_handling import NotFoundError
from shared.object_store import ObjectStore

logger = Logger(service="deletion-pipeline")


@dataclass(frozen=True)
class DeletionReport:
    submission_id: str
    assets_deleted: int
    assets_missing: int
    assets_failed: int

    def to_body(self) -> dict[str, Any]:
        return {
            "deleted": True,
            "id": self.submission_id,
            "assetsDeleted": self.assets_deleted,
            "assetsMissing": self.assets_missing,
            "assetsFailed": self.assets_failed,
        }


def asset_keys(store: ObjectStore, record: dict[str, Any]) -> list[str]:
    """Keys of every object a record owns: cover first, then tracks in order."""
    assets = [record.get("cover")] + [track.get("audio") for track in record.get("tracks", [])]
    keys: list[str] = []
    for asset in assets:
        if not asset:
            continue
        key = asset.get("key") or (store.key_from_url(asset["url"]) if asset.get("url") else None)
        if key:
            keys.append(key)
    return keys


class DeletionPipeline:
    def __init__(self, store: ObjectStore, records: SubmissionTable) -> None:
        self._store = store
        self._records = records

    def delete(self, submission_id: str) -> DeletionReport:
        record = self._records.get(submission_id)
        if record is None:
            raise NotFoundError(f"Submission '{submission_id}' not found")

        deleted = missing = failed = 0
        for key in asset_keys(self._store, record):
            try:
                if self._store.delete(key):
                    deleted += 1
                else:
                    missing += 1
            except Exception:
                failed += 1
                logger.warning(
                    "Asset delete failed; continuing",
                    extra={"submissionId": submission_id, "key": key},
                    exc_info=True,
                )

        self._records.delete(submission_id)
        logger.info(
            "Submission deleted",
            extra={
                "submissionId": submission_id,
                "assetsDeleted": deleted,
                "assetsMissing": missing,
                "assetsFailed": failed,
            },
        )
        return DeletionReport(submission_id, deleted, missing, failed)
