"""Environment-driven constants for table names, bucket names, and config."""

from __future__ import annotations

import os


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    value = os.environ.get(key)
    return int(value) if value else default


# ---- Application ----
APP_NAME: str = _env("APP_NAME", "album-intake")
ENVIRONMENT: str = _env("ENVIRONMENT", "dev")
IS_PRODUCTION: bool = ENVIRONMENT == "prod"
CORS_ORIGIN: str = _env("CORS_ORIGIN", "*")

# ---- DynamoDB Tables ----
SUBMISSIONS_TABLE_NAME: str = _env(
    "SUBMISSIONS_TABLE_NAME", f"{APP_NAME}-{ENVIRONMENT}-submissions"
)
DYNAMODB_ENDPOINT_URL: str = _env("DYNAMODB_ENDPOINT_URL")

# ---- S3 ----
AWS_REGION: str = _env("AWS_REGION", _env("AWS_DEFAULT_REGION", "us-east-1"))
ASSET_BUCKET_NAME: str = _env("ASSET_BUCKET_NAME")
S3_ENDPOINT_URL: str = _env("S3_ENDPOINT_URL")
ASSET_PUBLIC_BASE_URL: str = _env("ASSET_PUBLIC_BASE_URL")
S3_CONNECT_TIMEOUT: int = _env_int("S3_CONNECT_TIMEOUT", 5)
S3_READ_TIMEOUT: int = _env_int("S3_READ_TIMEOUT", 30)
S3_MAX_ATTEMPTS: int = _env_int("S3_MAX_ATTEMPTS", 3)

# ---- Submission Status Values ----
STATUS_PROCESSING: str = "PROCESSING"

# ---- Submission Modes ----
MODE_ALBUM: str = "album"
MODE_SINGLE: str = "single"
SUBMISSION_MODE: str = _env("SUBMISSION_MODE", MODE_ALBUM)

# ---- Monetization Choices ----
MONETIZATION_CHOICES: frozenset[str] = frozenset({"enabled", "disabled"})

# ---- Upload Constraints ----
MAX_FILE_SIZE_BYTES: int = _env_int("MAX_FILE_SIZE_BYTES", 10 * 1024 * 1024)  # 10 MB
MAX_TRACK_COUNT: int = _env_int("MAX_TRACK_COUNT", 30)
COVER_WIDTH: int = _env_int("COVER_WIDTH", 3000)
COVER_HEIGHT: int = _env_int("COVER_HEIGHT", 3000)
ALLOWED_FORMATS: frozenset[str] = frozenset({"mp3", "wav", "m4a", "flac"})
FORMAT_CONTENT_TYPES: dict[str, str] = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/mp4",
    "flac": "audio/flac",
}

# ---- Pipeline Limits ----
UPLOAD_CONCURRENCY: int = _env_int("UPLOAD_CONCURRENCY", 4)
UPLOAD_TIMEOUT_SECONDS: int = _env_int("UPLOAD_TIMEOUT_SECONDS", 60)
DEADLINE_MARGIN_MS: int = _env_int("DEADLINE_MARGIN_MS", 3000)

# ---- S3 Key Patterns ----
COVER_KEY_PREFIX: str = "covers"
AUDIO_KEY_PREFIX: str = "audio"

# ---- Required Form Fields ----
REQUIRED_FIELDS: tuple[str, ...] = (
    "email",
    "artistName",
    "artistNameLatin",
    "releaseDate",
    "genre",
)
AGREEMENT_FIELDS: tuple[str, ...] = (
    "rightsAgreement",
    "reReleaseAgreement",
    "platformAgreement",
)
OPTIONAL_FIELDS: tuple[str, ...] = (
    "versionInfo",
    "albumDescription",
    "note",
)
