"""Extract files and form fields from a multipart submission event."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, DecimalException
from typing import Any

import python_multipart
from boto3.dynamodb.types import TypeSerializer
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import parse_options_header
from shared.constants import AGREEMENT_FIELDS, MAX_TRACK_COUNT
from shared.error_handling import MalformedSubmission, MissingTrackAsset
from shared.models import ParsedSubmission, UploadedFile

logger = logging.getLogger(__name__)

COVER_FIELDS: tuple[str, ...] = ("cover", "albumCover")
TRACK_METADATA_FIELDS: tuple[str, ...] = ("tracks", "tracks[]")
LIST_FIELDS: dict[str, str] = {
    "platforms": "platforms",
    "excludedTerritories": "excluded_territories",
}

_AUDIO_FIELD = re.compile(r"^audio(?:_(\d+))?$")
_TRUE_VALUES = frozenset({"true", "on", "1", "yes"})
_FALSE_VALUES = frozenset({"false", "off", "0", "no", ""})
_SERIALIZER = TypeSerializer()


@dataclass
class _Part:
    headers: dict[bytes, bytes] = field(default_factory=dict)
    data: bytearray = field(default_factory=bytearray)


class _PartCollector:
    """Callback sink for ``python_multipart.MultipartParser``."""

    def __init__(self) -> None:
        self.parts: list[_Part] = []
        self._current = _Part()
        self._header_field = b""
        self._header_value = b""

    def callbacks(self) -> dict[str, Any]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
        }

    def on_part_begin(self) -> None:
        self._current = _Part()

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._current.data.extend(data[start:end])

    def on_part_end(self) -> None:
        self.parts.append(self._current)

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._current.headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""


def _header(event: dict[str, Any], name: str) -> str | None:
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == name:
            return value  # type: ignore[no-any-return]
    return None


def _raw_body(event: dict[str, Any]) -> bytes:
    body = event.get("body")
    if body is None:
        raise MalformedSubmission("Request body is empty")
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedSubmission("Request body is not valid base64") from exc
    if isinstance(body, bytes):
        return body
    # non-binary bodies arrive as text
    return body.encode("utf-8")


def _split_parts(event: dict[str, Any]) -> list[_Part]:
    content_type = _header(event, "content-type")
    if not content_type:
        raise MalformedSubmission("Content-Type header is required")
    media_type, params = parse_options_header(content_type)
    if media_type != b"multipart/form-data" or not params.get(b"boundary"):
        raise MalformedSubmission("Content-Type must be multipart/form-data with a boundary")

    collector = _PartCollector()
    parser = python_multipart.MultipartParser(params[b"boundary"], collector.callbacks())
    try:
        parser.write(_raw_body(event))
        parser.finalize()
    except MultipartParseError as exc:
        raise MalformedSubmission("Multipart body could not be parsed") from exc
    return collector.parts


def _decode_json(raw: str) -> Any:
    def _reject_constant(name: str) -> Any:
        raise ValueError(f"{name} is not allowed")

    return json.loads(raw, parse_float=Decimal, parse_constant=_reject_constant)


def parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise MalformedSubmission(f"'{value}' is not a boolean value")


def _parse_track_metadata(raw_entries: list[str]) -> list[dict[str, Any]]:
    tracks: list[dict[str, Any]] = []
    for index, raw in enumerate(raw_entries):
        try:
            decoded = _decode_json(raw)
        except ValueError as exc:
            raise MalformedSubmission(f"Track metadata {index} is not valid JSON") from exc
        if not isinstance(decoded, dict):
            raise MalformedSubmission(f"Track metadata {index} must be a JSON object")
        try:
            _SERIALIZER.serialize(decoded)
        except (TypeError, DecimalException) as exc:
            # DynamoDB numbers: 38 significant digits, exponent -130..125
            raise MalformedSubmission(
                f"Track metadata {index} has a value that cannot be stored"
            ) from exc
        tracks.append(decoded)
    return tracks


def _parse_string_list(name: str, encoded: str | None, repeated: list[str]) -> list[str]:
    if encoded is None:
        values = repeated
    else:
        try:
            values = _decode_json(encoded)
        except ValueError as exc:
            raise MalformedSubmission(f"{name} must be a JSON array") from exc
        if not isinstance(values, list):
            raise MalformedSubmission(f"{name} must be a JSON array")
    if not all(isinstance(value, str) for value in values):
        raise MalformedSubmission(f"{name} must contain only strings")
    # de-duplicate, keep submission order
    return list(dict.fromkeys(value.strip() for value in values if value.strip()))


def _audio_index(name: str, max_tracks: int) -> int | None:
    match = _AUDIO_FIELD.match(name)
    if match is None:
        return None
    index = int(match.group(1) or 0)
    if index >= max_tracks:
        raise MalformedSubmission(f"Audio field '{name}' exceeds the limit of {max_tracks} tracks")
    return index


def parse_submission(event: dict[str, Any], max_tracks: int = MAX_TRACK_COUNT) -> ParsedSubmission:
    """Split a multipart API Gateway event into cover, audio, and metadata.

    Raises:
        MalformedSubmission: Missing cover or audio, bad JSON, or a broken body.
        MissingTrackAsset: Track metadata and audio files don't line up.
    """
    cover: UploadedFile | None = None
    audio_by_index: dict[int, UploadedFile] = {}
    raw_tracks: list[str] = []
    fields: dict[str, str] = {}
    repeated: dict[str, list[str]] = {name: [] for name in LIST_FIELDS}

    for part in _split_parts(event):
        disposition, options = parse_options_header(part.headers.get(b"content-disposition", b""))
        if disposition != b"form-data" or b"name" not in options:
            raise MalformedSubmission("Every part needs a form-data Content-Disposition name")
        name = options[b"name"].decode("utf-8", errors="replace")
        filename = options.get(b"filename")

        if filename is not None:
            if not filename and not part.data:
                # browsers send an empty part for file inputs left blank
                continue
            upload = UploadedFile(
                field_name=name,
                filename=filename.decode("utf-8", errors="replace"),
                content_type=part.headers.get(b"content-type", b"application/octet-stream")
                .decode("latin-1")
                .strip(),
                data=bytes(part.data),
            )
            if name in COVER_FIELDS:
                if cover is not None:
                    raise MalformedSubmission("Only one cover image may be submitted")
                cover = upload
                continue
            index = _audio_index(name, max_tracks)
            if index is None:
                raise MalformedSubmission(f"Unexpected file field '{name}'")
            if index in audio_by_index:
                raise MalformedSubmission(f"Audio file for track {index} was sent twice")
            audio_by_index[index] = upload
            continue

        value = part.data.decode("utf-8", errors="replace")
        if name in TRACK_METADATA_FIELDS:
            raw_tracks.append(value)
        elif name.endswith("[]") and name[:-2] in repeated:
            repeated[name[:-2]].append(value)
        elif name in COVER_FIELDS or _AUDIO_FIELD.match(name):
            raise MalformedSubmission(f"Field '{name}' must be a file")
        else:
            fields[name] = value

    if cover is None:
        raise MalformedSubmission("A cover image is required")
    if not audio_by_index:
        raise MalformedSubmission("At least one audio file is required")

    track_metadata = _parse_track_metadata(raw_tracks)
    if len(track_metadata) != len(audio_by_index):
        raise MissingTrackAsset(
            f"{len(track_metadata)} track metadata entries but {len(audio_by_index)} audio files"
        )
    missing = [index for index in range(len(track_metadata)) if index not in audio_by_index]
    if missing:
        raise MissingTrackAsset(f"No audio file for track {missing[0]}")

    lists = {
        attr: _parse_string_list(name, fields.pop(name, None), repeated[name])
        for name, attr in LIST_FIELDS.items()
    }
    agreements = {name: parse_bool(fields.pop(name, None)) for name in AGREEMENT_FIELDS}

    logger.info(
        "Parsed submission: tracks=%d coverBytes=%d fields=%s",
        len(track_metadata),
        cover.size,
        sorted(fields),
    )
    return ParsedSubmission(
        cover=cover,
        audio_files=[audio_by_index[index] for index in range(len(track_metadata))],
        track_metadata=track_metadata,
        fields=fields,
        platforms=lists["platforms"],
        excluded_territories=lists["excluded_territories"],
        agreements=agreements,
    )
