"""DELETE /submissions/{submissionId} — delete a submission and all of its stored assets."""

from __future__ import annotations

import logging
from typing import Any

from shared.error_handling import handle_errors
from shared.response import success
from shared.runtime import get_deletion_pipeline

logger = logging.getLogger(__name__)


@handle_errors
def lambda_handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    submission_id: str = event["pathParameters"]["submissionId"]
    logger.info("Delete submission request: submissionId=%s", submission_id)

    report = get_deletion_pipeline().delete(submission_id)
    return success(report.to_body())
