"""Tests for the deletion pipeline."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, patch

import boto3
import pytest
from shared.deletion_pipeline import DeletionPipeline, asset_keys
from shared.dynamodb_utils import SubmissionTable, build_table
from shared.error_handling import NotFoundError, StoreUnavailable
from shared.object_store import ObjectStore
from shared.submission_pipeline import SubmissionPipeline

from tests.conftest import BUCKET_NAME, list_keys, valid_form


@pytest.fixture()
def parts(s3_buckets: dict[str, Any]) -> tuple[ObjectStore, SubmissionTable]:
    store = ObjectStore(boto3.client("s3", region_name="us-east-1"), bucket=BUCKET_NAME)
    return store, SubmissionTable(build_table())


def _seed(store: ObjectStore, records: SubmissionTable) -> str:
    return SubmissionPipeline(store, records).handle(valid_form().event()).submission_id


def test_deletes_assets_then_record(parts: tuple[ObjectStore, SubmissionTable]) -> None:
    store, records = parts
    submission_id = _seed(store, records)

    report = DeletionPipeline(store, records).delete(submission_id)

    assert report.to_body() == {
        "deleted": True,
        "id": submission_id,
        "assetsDeleted": 3,
        "assetsMissing": 0,
        "assetsFailed": 0,
    }
    assert list_keys() == []
    assert records.get(submission_id) is None


def test_second_delete_is_not_found_without_store_calls(
    parts: tuple[ObjectStore, SubmissionTable],
) -> None:
    store, records = parts
    submission_id = _seed(store, records)
    pipeline = DeletionPipeline(store, records)
    pipeline.delete(submission_id)

    with patch.object(store, "delete", wraps=store.delete) as delete:
        with pytest.raises(NotFoundError):
            pipeline.delete(submission_id)

    delete.assert_not_called()


def test_already_missing_asset_is_counted(parts: tuple[ObjectStore, SubmissionTable]) -> None:
    store, records = parts
    submission_id = _seed(store, records)
    record = records.get(submission_id)
    assert record is not None
    boto3.client("s3", region_name="us-east-1").delete_object(
        Bucket=BUCKET_NAME, Key=record["cover"]["key"]
    )

    report = DeletionPipeline(store, records).delete(submission_id)

    assert report.assets_deleted == 2
    assert report.assets_missing == 1
    assert records.get(submission_id) is None


def test_asset_failure_does_not_block_record_delete(
    parts: tuple[ObjectStore, SubmissionTable],
) -> None:
    store, records = parts
    submission_id = _seed(store, records)
    record = records.get(submission_id)
    assert record is not None
    cover_key = record["cover"]["key"]
    real_delete = store.delete

    def flaky_delete(key: str) -> bool:
        if key == cover_key:
            raise StoreUnavailable("down")
        return real_delete(key)

    with patch.object(store, "delete", side_effect=flaky_delete):
        report = DeletionPipeline(store, records).delete(submission_id)

    assert report.assets_failed == 1
    assert report.assets_deleted == 2
    assert list_keys() == [cover_key]
    assert records.get(submission_id) is None


def test_asset_keys_order_and_url_fallback() -> None:
    store = ObjectStore(MagicMock(), bucket="b")
    record = {
        "cover": {"key": "covers/c.png"},
        "tracks": [
            {"title": "A", "audio": {"url": store.url_for("audio/a.wav")}},
            {"title": "B", "audio": {"key": "audio/b.wav"}},
            {"title": "No asset"},
        ],
    }

    assert asset_keys(store, record) == ["covers/c.png", "audio/a.wav", "audio/b.wav"]
