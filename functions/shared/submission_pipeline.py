"""Validate, upload, and commit one album submission.

The pipeline runs Parse -> Validate -> Upload cover -> Upload tracks -> Commit.
Everything that can reject a submission runs before the first upload. Once
uploads start, every key handed to the store is recorded in an
``UploadLedger``; if any later step fails, the ledger's keys are deleted
best-effort before the original error propagates, so a failed submission
leaves neither a record nor stored assets behind.
"""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

from aws_lambda_powertools import Logger
from shared.asset_keys import generate_key
from shared.audio_utils import check_audio
from shared.constants import (
    AGREEMENT_FIELDS,
    AUDIO_KEY_PREFIX,
    COVER_KEY_PREFIX,
    MAX_FILE_SIZE_BYTES,
    MAX_TRACK_COUNT,
    MODE_ALBUM,
    MODE_SINGLE,
    MONETIZATION_CHOICES,
    OPTIONAL_FIELDS,
    REQUIRED_FIELDS,
    STATUS_PROCESSING,
    UPLOAD_CONCURRENCY,
    UPLOAD_TIMEOUT_SECONDS,
)
from shared.dynamodb_utils import SubmissionTable
from shared.error_handling import (
    MalformedSubmission,
    MissingTrackAsset,
    PolicyViolation,
    StoreUnavailable,
)
from shared.image_policy import ImagePolicy
from shared.models import Asset, CommittedSubmission, ParsedSubmission, UploadedFile
from shared.object_store import ObjectStore
from shared.passwords import hash_password
from shared.submission_parser import parse_submission
from ulid import ULID

logger = Logger(service="submission-pipeline")

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class PipelineSettings:
    max_tracks: int = MAX_TRACK_COUNT
    max_file_bytes: int = MAX_FILE_SIZE_BYTES
    concurrency: int = UPLOAD_CONCURRENCY
    upload_timeout: float = UPLOAD_TIMEOUT_SECONDS

    @classmethod
    def for_mode(cls, mode: str, **overrides: Any) -> PipelineSettings:
        """Asset slots per mode: ``single`` is cover + one track, ``album`` is cover + N."""
        if mode == MODE_SINGLE:
            return cls(max_tracks=1, **overrides)
        if mode == MODE_ALBUM:
            return cls(**overrides)
        raise ValueError(f"Unknown submission mode '{mode}'")


class UploadLedger:
    """Keys written (or being written) to the store during one request."""

    def __init__(self) -> None:
        self._keys: list[str] = []
        self._lock = threading.Lock()

    def record(self, key: str) -> None:
        with self._lock:
            self._keys.append(key)

    @property
    def keys(self) -> list[str]:
        with self._lock:
            return list(self._keys)


@dataclass
class _ValidatedSubmission:
    parsed: ParsedSubmission
    release_date: date
    cover_content_type: str
    audio_content_types: list[str]
    submission_id: str = field(default_factory=lambda: str(ULID()))


class SubmissionPipeline:
    def __init__(
        self,
        store: ObjectStore,
        records: SubmissionTable,
        image_policy: ImagePolicy | None = None,
        settings: PipelineSettings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._records = records
        self._image_policy = image_policy or ImagePolicy()
        self.settings = settings or PipelineSettings()
        self._clock = clock

    def handle(self, event: dict[str, Any], deadline: float | None = None) -> CommittedSubmission:
        """Parse a multipart API Gateway event and run it through the pipeline."""
        parsed = parse_submission(event, max_tracks=self.settings.max_tracks)
        return self.submit(parsed, deadline=deadline)

    def submit(
        self, parsed: ParsedSubmission, deadline: float | None = None
    ) -> CommittedSubmission:
        validated = self._validate(parsed)
        submission_id = validated.submission_id
        logger.info(
            "Submission validated",
            extra={"submissionId": submission_id, "tracks": len(parsed.audio_files)},
        )

        ledger = UploadLedger()
        try:
            self._check_deadline(deadline)
            cover = self._upload(
                ledger,
                COVER_KEY_PREFIX,
                parsed.cover,
                validated.cover_content_type,
            )
            tracks = self._upload_tracks(ledger, validated, deadline)
            item = self._assemble(validated, cover, tracks)
            self._records.insert(item)
        except BaseException:
            logger.warning(
                "Submission failed after uploads started; cleaning up",
                extra={"submissionId": submission_id, "keys": len(ledger.keys)},
            )
            self._cleanup(ledger, submission_id)
            raise

        logger.info("Submission committed", extra={"submissionId": submission_id})
        return CommittedSubmission(
            submission_id=submission_id,
            cover_url=cover.url,
            track_urls=[asset.url for asset in tracks],
        )

    # ---- Validate ----

    def _validate(self, parsed: ParsedSubmission) -> _ValidatedSubmission:
        if not parsed.audio_files:
            raise MalformedSubmission("At least one audio file is required")
        if len(parsed.track_metadata) != len(parsed.audio_files):
            raise MissingTrackAsset(
                f"{len(parsed.track_metadata)} track metadata entries but "
                f"{len(parsed.audio_files)} audio files"
            )
        if len(parsed.audio_files) > self.settings.max_tracks:
            raise PolicyViolation(
                f"{len(parsed.audio_files)} tracks submitted; "
                f"the limit is {self.settings.max_tracks}"
            )

        missing = [name for name in REQUIRED_FIELDS if not parsed.fields.get(name, "").strip()]
        if missing:
            raise PolicyViolation(f"Missing required fields: {', '.join(missing)}")
        if not _EMAIL.match(parsed.fields["email"].strip()):
            raise PolicyViolation("email is not a valid address")
        try:
            release_date = date.fromisoformat(parsed.fields["releaseDate"].strip())
        except ValueError as exc:
            raise PolicyViolation("releaseDate must be an ISO date (YYYY-MM-DD)") from exc

        declined = [name for name in AGREEMENT_FIELDS if not parsed.agreements.get(name)]
        if declined:
            raise PolicyViolation(f"All agreements must be accepted: {', '.join(declined)}")
        monetization = parsed.fields.get("monetization", "").strip()
        if monetization not in MONETIZATION_CHOICES:
            raise PolicyViolation(
                f"monetization must be one of: {', '.join(sorted(MONETIZATION_CHOICES))}"
            )
        if not parsed.platforms:
            raise PolicyViolation("Select at least one distribution platform")

        image = self._image_policy.validate(parsed.cover.data)
        audio_content_types = [
            check_audio(index, upload, self.settings.max_file_bytes)
            for index, upload in enumerate(parsed.audio_files)
        ]
        return _ValidatedSubmission(
            parsed=parsed,
            release_date=release_date,
            cover_content_type=image.content_type,
            audio_content_types=audio_content_types,
        )

    # ---- Upload ----

    def _upload(
        self,
        ledger: UploadLedger,
        folder: str,
        upload: UploadedFile,
        content_type: str,
    ) -> Asset:
        key = generate_key(folder, upload.filename, content_type)
        # recorded before the put so a timed-out write is still cleaned up
        ledger.record(key)
        url = self._store.put(key, upload.data, content_type)
        return Asset(
            key=key,
            url=url,
            content_type=content_type,
            size=upload.size,
            filename=upload.filename,
        )

    def _upload_tracks(
        self,
        ledger: UploadLedger,
        validated: _ValidatedSubmission,
        deadline: float | None,
    ) -> list[Asset]:
        uploads = validated.parsed.audio_files
        results: list[Asset | None] = [None] * len(uploads)
        workers = max(1, min(self.settings.concurrency, len(uploads)))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="track-upload")
        try:
            futures = {}
            for index, upload in enumerate(uploads):
                self._check_deadline(deadline)
                future = executor.submit(
                    self._upload,
                    ledger,
                    AUDIO_KEY_PREFIX,
                    upload,
                    validated.audio_content_types[index],
                )
                futures[future] = index
            try:
                for future in as_completed(futures, timeout=self._wait_budget(deadline)):
                    # results land by index, never by completion order
                    results[futures[future]] = future.result()
            except FuturesTimeout as exc:
                raise StoreUnavailable("Track uploads timed out") from exc
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

        assets = [asset for asset in results if asset is not None]
        if len(assets) != len(uploads):
            raise StoreUnavailable("Not every track was uploaded")
        return assets

    def _check_deadline(self, deadline: float | None) -> None:
        if deadline is not None and self._clock() >= deadline:
            raise StoreUnavailable("Request deadline reached before uploads finished")

    def _wait_budget(self, deadline: float | None) -> float:
        budget = float(self.settings.upload_timeout)
        if deadline is not None:
            budget = min(budget, max(0.0, deadline - self._clock()))
        return budget

    # ---- Commit ----

    def _assemble(
        self,
        validated: _ValidatedSubmission,
        cover: Asset,
        tracks: list[Asset],
    ) -> dict[str, Any]:
        parsed = validated.parsed
        fields = parsed.fields
        item: dict[str, Any] = {
            "submissionId": validated.submission_id,
            "email": fields["email"].strip(),
            "artistName": fields["artistName"].strip(),
            "artistNameLatin": fields["artistNameLatin"].strip(),
            "releaseDate": validated.release_date.isoformat(),
            "genre": fields["genre"].strip(),
            "versionInfo": "",
            "cover": cover.to_item(),
            "tracks": [
                {**metadata, "audio": asset.to_item()}
                for metadata, asset in zip(parsed.track_metadata, tracks, strict=True)
            ],
            "platforms": parsed.platforms,
            "excludedTerritories": parsed.excluded_territories,
            "monetization": fields["monetization"].strip(),
            "status": STATUS_PROCESSING,
            "createdAt": datetime.now(UTC).isoformat(),
        }
        for name in AGREEMENT_FIELDS:
            item[name] = parsed.agreements[name]
        for name in OPTIONAL_FIELDS:
            value = fields.get(name, "").strip()
            if value:
                item[name] = value
        password = fields.get("password", "")
        if password:
            item["passwordHash"] = hash_password(password)
        return item

    # ---- Compensate ----

    def _cleanup(self, ledger: UploadLedger, submission_id: str) -> None:
        for key in ledger.keys:
            try:
                self._store.discard(key)
            except Exception:
                logger.warning(
                    "Cleanup delete failed",
                    extra={"submissionId": submission_id, "key": key},
                    exc_info=True,
                )
