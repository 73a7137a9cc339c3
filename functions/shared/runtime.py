"""Process-wide clients and pipelines, built once per container.

Handlers call the ``get_*`` accessors; the first call constructs the S3 client
and DynamoDB table and injects them into the pipelines. ``shutdown`` releases
the S3 connection pool and runs at interpreter exit.
"""

from __future__ import annotations

import atexit
import logging
import threading
import time
from typing import Any

from shared.constants import DEADLINE_MARGIN_MS, SUBMISSION_MODE
from shared.deletion_pipeline import DeletionPipeline
from shared.dynamodb_utils import SubmissionTable, build_table
from shared.object_store import ObjectStore, build_s3_client
from shared.submission_pipeline import PipelineSettings, SubmissionPipeline

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_store: ObjectStore | None = None
_records: SubmissionTable | None = None


def _resources() -> tuple[ObjectStore, SubmissionTable]:
    global _store, _records
    with _lock:
        if _store is None or _records is None:
            _store = ObjectStore(build_s3_client())
            _records = SubmissionTable(build_table())
            logger.info("Initialized object store for bucket=%s", _store.bucket)
        return _store, _records


def get_store() -> ObjectStore:
    return _resources()[0]


def get_records() -> SubmissionTable:
    return _resources()[1]


def get_submission_pipeline() -> SubmissionPipeline:
    store, records = _resources()
    return SubmissionPipeline(store, records, settings=PipelineSettings.for_mode(SUBMISSION_MODE))


def get_deletion_pipeline() -> DeletionPipeline:
    store, records = _resources()
    return DeletionPipeline(store, records)


def deadline_from_context(context: Any) -> float | None:
    """Monotonic deadline leaving ``DEADLINE_MARGIN_MS`` for cleanup and the response."""
    remaining = getattr(context, "get_remaining_time_in_millis", None)
    if remaining is None:
        return None
    return time.monotonic() + (remaining() - DEADLINE_MARGIN_MS) / 1000


def shutdown() -> None:
    global _store, _records
    with _lock:
        if _store is not None:
            _store.close()
            logger.info("Closed object store client")
        _store = None
        _records = None


atexit.register(shutdown)
