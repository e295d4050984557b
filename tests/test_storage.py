import io
from unittest.mock import MagicMock, patch

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from driverhire.services import storage
from driverhire.services.storage import load_payment_proof, proof_url, read_upload, upload_payment_proof

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
PDF = b"%PDF-1.4\n" + b"\x00" * 32


def _upload(content: bytes, content_type: str, filename: str = "proof") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.mark.asyncio
async def test_load_proof_reads_and_names_object():
    proof = await load_payment_proof(_upload(PNG, "image/png"))
    assert proof.key.startswith("proofs/")
    assert proof.key.endswith(".png")
    assert proof.content == PNG
    assert proof.content_type == "image/png"


@pytest.mark.asyncio
async def test_upload_proof_mock_mode_returns_key():
    proof = await load_payment_proof(_upload(PNG, "image/png"))
    assert await upload_payment_proof(proof) == proof.key


@pytest.mark.asyncio
async def test_load_proof_pdf_extension():
    proof = await load_payment_proof(_upload(PDF, "application/pdf"))
    assert proof.key.endswith(".pdf")


@pytest.mark.asyncio
async def test_load_proof_rejects_content_type():
    with pytest.raises(ValueError, match="not allowed"):
        await load_payment_proof(_upload(b"GIF89a", "image/gif"))


@pytest.mark.asyncio
async def test_load_proof_rejects_mislabeled_file():
    with pytest.raises(ValueError, match="does not match"):
        await load_payment_proof(_upload(PDF, "image/jpeg"))


@pytest.mark.asyncio
async def test_load_proof_rejects_empty_file():
    with pytest.raises(ValueError, match="empty"):
        await load_payment_proof(_upload(b"", "image/png"))


@pytest.mark.asyncio
async def test_read_upload_enforces_limit():
    with pytest.raises(ValueError, match="too large"):
        await read_upload(_upload(b"x" * 2048, "image/png"), max_bytes=1024)

    assert await read_upload(_upload(b"x" * 1024, "image/png"), max_bytes=1024) == b"x" * 1024


@pytest.mark.asyncio
async def test_upload_proof_puts_object_in_s3():
    proof = await load_payment_proof(_upload(PNG, "image/png"))
    client = MagicMock()
    with (
        patch.object(storage.settings, "S3_ENDPOINT_URL", "https://s3.example.com"),
        patch("driverhire.services.storage.get_s3_client", return_value=client),
    ):
        key = await upload_payment_proof(proof)

    client.put_object.assert_called_once()
    kwargs = client.put_object.call_args.kwargs
    assert kwargs["Key"] == key
    assert kwargs["Body"] == PNG
    assert kwargs["ContentType"] == "image/png"


@pytest.mark.asyncio
async def test_proof_url():
    assert await proof_url(None) is None
    mock_url = await proof_url("proofs/abc.png")
    assert mock_url.startswith("https://storage.driverhire.dev/proofs/abc.png")

    client = MagicMock()
    client.generate_presigned_url.return_value = "https://s3.example.com/signed"
    with (
        patch.object(storage.settings, "S3_ENDPOINT_URL", "https://s3.example.com"),
        patch("driverhire.services.storage.get_s3_client", return_value=client),
    ):
        assert await proof_url("proofs/abc.png", expires_in=60) == "https://s3.example.com/signed"

    client.generate_presigned_url.assert_called_once_with(
        "get_object",
        Params={"Bucket": storage.settings.S3_BUCKET_NAME, "Key": "proofs/abc.png"},
        ExpiresIn=60,
    )
