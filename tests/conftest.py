"""Root conftest — shared fixtures for all tests."""

from __future__ import annotations

import base64
import io
import json
import os
import struct
import sys
import zlib
from collections.abc import Generator
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import boto3
import pytest
from moto import mock_aws
from PIL import Image

# Add functions/ to path so `from shared.xxx import ...` works in tests
sys.path.insert(0, str(Path(__file__).parent.parent / "functions"))

# ---- Environment variables for tests ----
os.environ["ENVIRONMENT"] = "test"
os.environ["APP_NAME"] = "album-intake"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["SUBMISSIONS_TABLE_NAME"] = "album-intake-test-submissions"
os.environ["ASSET_BUCKET_NAME"] = "album-intake-test-assets-123456789012"
os.environ["SUBMISSION_MODE"] = "album"

TABLE_NAME = "album-intake-test-submissions"
BUCKET_NAME = "album-intake-test-assets-123456789012"
BOUNDARY = "----albumintakeboundary7MA4YWxk"


@dataclass
class FakeLambdaContext:
    """Minimal Lambda context for aws-lambda-powertools compatibility."""

    function_name: str = "test-function"
    function_version: str = "$LATEST"
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:test-function"
    memory_limit_in_mb: int = 128
    aws_request_id: str = "test-request-id"
    log_group_name: str = "/aws/lambda/test-function"
    log_stream_name: str = "2025/01/01/[$LATEST]test"

    @staticmethod
    def get_remaining_time_in_millis() -> int:
        return 300000


@pytest.fixture()
def lambda_context() -> FakeLambdaContext:
    return FakeLambdaContext()


@pytest.fixture(autouse=True)
def _reset_runtime() -> Generator[None, None, None]:
    """Drop process-wide clients so each test builds them inside its own mock."""
    yield
    from shared import runtime

    runtime.shutdown()


@pytest.fixture()
def dynamodb_tables() -> Generator[dict[str, Any], None, None]:
    """Create mocked DynamoDB tables."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        submissions_table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[{"AttributeName": "submissionId", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "submissionId", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        yield {"submissions_table": submissions_table}


@pytest.fixture()
def s3_buckets(dynamodb_tables: dict[str, Any]) -> Generator[dict[str, Any], None, None]:
    """Create the mocked asset bucket (inside the same mock as the tables)."""
    s3 = boto3.client("s3", region_name="us-east-1")
    s3.create_bucket(Bucket=BUCKET_NAME)
    yield {"assets": BUCKET_NAME}


def list_keys(bucket: str = BUCKET_NAME) -> list[str]:
    s3 = boto3.client("s3", region_name="us-east-1")
    response = s3.list_objects_v2(Bucket=bucket)
    return sorted(obj["Key"] for obj in response.get("Contents", []))


# ---- Media builders ----


@lru_cache(maxsize=8)
def make_png(width: int = 3000, height: int = 3000) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color=(24, 48, 96)).save(buf, format="PNG")
    return buf.getvalue()


def _png_chunk(kind: bytes, data: bytes) -> bytes:
    return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data))


def make_png_header(width: int, height: int) -> bytes:
    """A tiny 1-bit PNG whose header declares ``width`` x ``height`` with no pixel data."""
    ihdr = struct.pack(">IIBBBBB", width, height, 1, 0, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + _png_chunk(b"IHDR", ihdr)
        + _png_chunk(b"IDAT", b"")
        + _png_chunk(b"IEND", b"")
    )


def make_wav(duration_sec: float = 0.1, sample_rate: int = 8000) -> bytes:
    """Create a minimal valid WAV file in memory."""
    num_channels = 1
    bits_per_sample = 16
    num_samples = int(sample_rate * duration_sec)
    data_size = num_samples * num_channels * (bits_per_sample // 8)
    buf = io.BytesIO()
    buf.write(b"RIFF")
    buf.write(struct.pack("<I", 36 + data_size))
    buf.write(b"WAVE")
    buf.write(b"fmt ")
    buf.write(struct.pack("<I", 16))
    buf.write(struct.pack("<H", 1))  # PCM
    buf.write(struct.pack("<H", num_channels))
    buf.write(struct.pack("<I", sample_rate))
    buf.write(struct.pack("<I", sample_rate * num_channels * bits_per_sample // 8))
    buf.write(struct.pack("<H", num_channels * bits_per_sample // 8))
    buf.write(struct.pack("<H", bits_per_sample))
    buf.write(b"data")
    buf.write(struct.pack("<I", data_size))
    buf.write(b"\x00" * data_size)
    return buf.getvalue()


# ---- Multipart submissions ----


@dataclass
class MultipartForm:
    """Builds a multipart/form-data body the way a browser form would post it."""

    fields: list[tuple[str, str]] = field(default_factory=list)
    files: list[tuple[str, str, str, bytes]] = field(default_factory=list)

    def add_field(self, name: str, value: str) -> MultipartForm:
        self.fields.append((name, value))
        return self

    def add_file(
        self, name: str, filename: str, content_type: str, data: bytes
    ) -> MultipartForm:
        self.files.append((name, filename, content_type, data))
        return self

    def body(self) -> bytes:
        buf = bytearray()
        for name, value in self.fields:
            buf += f'--{BOUNDARY}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
            buf += value.encode("utf-8") + b"\r\n"
        for name, filename, content_type, data in self.files:
            buf += (
                f"--{BOUNDARY}\r\n"
                f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
                f"Content-Type: {content_type}\r\n\r\n"
            ).encode()
            buf += data + b"\r\n"
        buf += f"--{BOUNDARY}--\r\n".encode()
        return bytes(buf)

    def event(self) -> dict[str, Any]:
        return {
            "httpMethod": "POST",
            "path": "/submissions",
            "headers": {"Content-Type": f"multipart/form-data; boundary={BOUNDARY}"},
            "requestContext": {"requestId": "test-request-id"},
            "body": base64.b64encode(self.body()).decode("ascii"),
            "isBase64Encoded": True,
        }


def valid_form(
    tracks: list[dict[str, Any]] | None = None,
    audio: list[bytes] | None = None,
    cover: bytes | None = None,
    **overrides: str | None,
) -> MultipartForm:
    """A complete, valid submission; override or drop any scalar with kwargs."""
    if tracks is None:
        tracks = [{"title": "First Light"}, {"title": "Second Wind"}]
    if audio is None:
        audio = [make_wav(0.1 * (index + 1)) for index in range(len(tracks))]

    scalars = {
        "email": "artist@example.com",
        "password": "s3cret-pass",
        "artistName": "새벽",
        "artistNameLatin": "Saebyeok",
        "releaseDate": "2026-12-01",
        "genre": "Indie",
        "versionInfo": "Original",
        "rightsAgreement": "true",
        "reReleaseAgreement": "true",
        "platformAgreement": "true",
        "monetization": "enabled",
        "platforms": json.dumps(["spotify", "apple_music"]),
        "excludedTerritories": json.dumps(["KP"]),
    }
    scalars.update(overrides)

    form = MultipartForm()
    for name, value in scalars.items():
        if value is not None:
            form.add_field(name, value)
    for metadata in tracks:
        form.add_field("tracks", json.dumps(metadata))
    form.add_file("cover", "cover.png", "image/png", cover if cover is not None else make_png())
    for index, data in enumerate(audio):
        form.add_file(f"audio_{index}", f"track{index + 1}.wav", "audio/wav", data)
    return form
