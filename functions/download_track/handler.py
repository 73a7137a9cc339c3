"""GET /submissions/{submissionId}/tracks/{trackIndex}/audio — download one track's audio."""

from __future__ import annotations

import logging
from typing import Any

from shared.asset_keys import original_filename, sanitize_filename
from shared.error_handling import NotFoundError, ValidationError, handle_errors
from shared.response import binary
from shared.runtime import get_records, get_store

logger = logging.getLogger(__name__)


@handle_errors
def lambda_handler(event: dict[str, Any], _context: Any) -> dict[str, Any]:
    params = event["pathParameters"]
    submission_id: str = params["submissionId"]
    raw_index: str = params["trackIndex"]
    logger.info("Download request: submissionId=%s track=%s", submission_id, raw_index)

    if not raw_index.isdigit():
        raise ValidationError("trackIndex must be a non-negative integer")
    index = int(raw_index)

    record = get_records().get(submission_id)
    if record is None:
        raise NotFoundError(f"Submission '{submission_id}' not found")
    tracks = record.get("tracks", [])
    if index >= len(tracks):
        raise NotFoundError(f"Submission '{submission_id}' has no track {index}")

    store = get_store()
    audio = tracks[index]["audio"]
    key = audio.get("key") or store.key_from_url(audio["url"])
    body = store.get(key)
    try:
        data = body.read()
    finally:
        body.close()

    filename = sanitize_filename(audio.get("filename", "")) or original_filename(key)
    logger.info("Streaming %d bytes for key=%s", len(data), key)
    return binary(data, audio.get("contentType", "application/octet-stream"), filename)
