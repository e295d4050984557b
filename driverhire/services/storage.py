"""Payment-proof storage on an S3-compatible bucket.

The returned object key is the opaque proof reference stored on the payment.
"""
import asyncio
import threading
import uuid
from dataclasses import dataclass

import boto3
import structlog
from fastapi import UploadFile

from driverhire.config import settings

logger = structlog.get_logger()

PROOF_FOLDER = "proofs"
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "application/pdf"}
_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "application/pdf": "pdf"}
_CHUNK_SIZE = 64 * 1024

# Magic bytes for file type validation
MAGIC_BYTES = {
    "image/jpeg": [b"\xff\xd8\xff"],
    "image/png": [b"\x89PNG"],
    "application/pdf": [b"%PDF"],
}

_MOCK_HOST = "https://storage.driverhire.dev"


def _validate_magic_bytes(content: bytes, content_type: str) -> bool:
    """Validate file content matches declared content type via magic bytes."""
    return any(content.startswith(sig) for sig in MAGIC_BYTES.get(content_type, []))


_s3_client = None
_s3_lock = threading.Lock()


def get_s3_client():
    """Get or create a cached S3 client. Creation is guarded by a lock; use is thread-safe."""
    global _s3_client
    if _s3_client is None:
        with _s3_lock:
            if _s3_client is None:
                kwargs = {
                    "service_name": "s3",
                    "aws_access_key_id": settings.S3_ACCESS_KEY_ID,
                    "aws_secret_access_key": settings.S3_SECRET_ACCESS_KEY,
                }
                if settings.S3_ENDPOINT_URL:
                    kwargs["endpoint_url"] = settings.S3_ENDPOINT_URL
                _s3_client = boto3.client(**kwargs)
    return _s3_client


async def read_upload(file: UploadFile, max_bytes: int) -> bytes:
    """Read an upload in bounded chunks, failing as soon as ``max_bytes`` is exceeded."""
    limit_mb = max_bytes / (1024 * 1024)
    if file.size is not None and file.size > max_bytes:
        raise ValueError(f"File too large. Maximum size is {limit_mb:g} MB.")

    content = bytearray()
    while True:
        chunk = await file.read(_CHUNK_SIZE)
        if not chunk:
            break
        content.extend(chunk)
        if len(content) > max_bytes:
            raise ValueError(f"File too large. Maximum size is {limit_mb:g} MB.")
    return bytes(content)


@dataclass(frozen=True)
class PaymentProof:
    key: str
    content: bytes
    content_type: str


async def load_payment_proof(file: UploadFile) -> PaymentProof:
    """Read and validate a payment proof without storing it.

    The returned key is the reference to record on the payment; the object
    only exists once ``upload_payment_proof`` has run.

    Raises:
        ValueError: If the file type, content or size is invalid.
    """
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise ValueError(f"File type {file.content_type} not allowed. Use JPEG, PNG or PDF.")

    content = await read_upload(file, settings.PAYMENT_PROOF_MAX_BYTES)
    if not content:
        raise ValueError("Uploaded file is empty.")
    if not _validate_magic_bytes(content, file.content_type):
        raise ValueError(
            f"File content does not match declared type {file.content_type}. "
            "The file may be corrupted or mislabeled."
        )

    key = f"{PROOF_FOLDER}/{uuid.uuid4()}.{_EXTENSIONS[file.content_type]}"
    return PaymentProof(key=key, content=content, content_type=file.content_type)


async def upload_payment_proof(proof: PaymentProof) -> str:
    """Put a validated proof in the bucket and return its reference."""
    if not settings.S3_ENDPOINT_URL:
        logger.info("proof_upload_mock", key=proof.key)
        return proof.key

    client = get_s3_client()
    await asyncio.to_thread(
        client.put_object,
        Bucket=settings.S3_BUCKET_NAME,
        Key=proof.key,
        Body=proof.content,
        ContentType=proof.content_type,
    )
    logger.info("proof_uploaded", key=proof.key, size=len(proof.content))
    return proof.key


async def proof_url(ref: str | None, expires_in: int = 900) -> str | None:
    """Resolve a proof reference to a short-lived URL for reviewers."""
    if not ref:
        return None
    if not settings.S3_ENDPOINT_URL:
        return f"{_MOCK_HOST}/{ref}?presigned=mock&expires={expires_in}"

    client = get_s3_client()
    return await asyncio.to_thread(
        client.generate_presigned_url,
        "get_object",
        Params={"Bucket": settings.S3_BUCKET_NAME, "Key": ref},
        ExpiresIn=expires_in,
    )
