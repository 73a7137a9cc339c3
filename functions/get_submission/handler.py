"""GET /submissions/{submissionId} — retrieve a stored submission record."""

from __future__ import annotations

import logging
from typing import Any

from shared.error_handling import NotFoundError, handle_errors
from shared.response import success
from shared.runtime import get_records

logger = logging.getLogger(__name__)

_PRIVATE_FIELDS = frozenset({"passwordHash"})


@handle_errors
def lambda_handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    submission_id: str = event["pathParameters"]["submissionId"]
    logger.info("Get submission request: submissionId=%s", submission_id)

    record = get_records().get(submission_id)
    if record is None:
        raise NotFoundError(f"Submission '{submission_id}' not found")

    return success({key: value for key, value in record.items() if key not in _PRIVATE_FIELDS})
