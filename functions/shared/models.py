"""Data types passed between the parser, the pipelines, and the record store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class UploadedFile:
    """One file part of a multipart body, held in memory."""

    field_name: str
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ParsedSubmission:
    """Everything extracted from one submission request, before validation."""

    cover: UploadedFile
    audio_files: list[UploadedFile]
    track_metadata: list[dict[str, Any]]
    fields: dict[str, str] = field(default_factory=dict)
    platforms: list[str] = field(default_factory=list)
    excluded_territories: list[str] = field(default_factory=list)
    agreements: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class Asset:
    """Reference to one object written to the store by a submission."""

    key: str
    url: str
    content_type: str
    size: int
    filename: str

    def to_item(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "url": self.url,
            "contentType": self.content_type,
            "size": self.size,
            "filename": self.filename,
        }


@dataclass(frozen=True)
class CommittedSubmission:
    submission_id: str
    cover_url: str
    track_urls: list[str]

    def to_body(self) -> dict[str, Any]:
        return {
            "id": self.submission_id,
            "coverUrl": self.cover_url,
            "trackUrls": self.track_urls,
        }
