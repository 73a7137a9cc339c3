"""POST /submissions — validate, upload, and record an album submission."""

from __future__ import annotations

import logging
from typing import Any

from shared.error_handling import handle_errors
from shared.response import success
from shared.runtime import deadline_from_context, get_submission_pipeline

logger = logging.getLogger(__name__)


@handle_errors
def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    logger.info("Submission request: bodyBase64=%s", bool(event.get("isBase64Encoded")))

    pipeline = get_submission_pipeline()
    committed = pipeline.handle(event, deadline=deadline_from_context(context))

    logger.info(
        "Submission created: submissionId=%s tracks=%d",
        committed.submission_id,
        len(committed.track_urls),
    )
    return success(committed.to_body())
