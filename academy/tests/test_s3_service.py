"""
Tests for s3_service: URL parsing, uploads and best-effort deletes with a
mocked boto3 client.
"""

from unittest.mock import MagicMock, patch

import pytest

from academy.services import s3_service

S3_ENV = {
    "AWS_ACCESS_KEY_ID": "test-key",
    "AWS_SECRET_ACCESS_KEY": "test-secret",
    "AWS_S3_BUCKET": "test-bucket",
    "AWS_S3_REGION": "me-south-1",
}


class TestExtractKeyFromUrl:
    def test_valid_s3_url(self):
        url = "https://test-bucket.s3.me-south-1.amazonaws.com/certificates/3/FSA-2026-000042.pdf"
        key = s3_service._extract_key_from_url(url, expected_bucket="test-bucket")
        assert key == "certificates/3/FSA-2026-000042.pdf"

    def test_wrong_bucket(self):
        url = "https://other-bucket.s3.me-south-1.amazonaws.com/players/1/a.jpg"
        assert s3_service._extract_key_from_url(url, expected_bucket="test-bucket") is None

    def test_empty_path(self):
        assert s3_service._extract_key_from_url("https://test-bucket.s3.me-south-1.amazonaws.com/") is None


def test_is_configured(monkeypatch):
    for name in S3_ENV:
        monkeypatch.delenv(name, raising=False)
    assert s3_service.is_configured() is False
    for name, value in S3_ENV.items():
        monkeypatch.setenv(name, value)
    assert s3_service.is_configured() is True


@pytest.mark.asyncio
@patch.dict("os.environ", S3_ENV)
@patch("academy.services.s3_service._get_s3_client")
async def test_upload_certificate(mock_get_client):
    mock_client = MagicMock()
    mock_get_client.return_value = mock_client

    url = await s3_service.upload_certificate(3, "FSA-2026-000042", b"%PDF-1.4")

    assert url == "https://test-bucket.s3.me-south-1.amazonaws.com/certificates/3/FSA-2026-000042.pdf"
    kwargs = mock_client.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "test-bucket"
    assert kwargs["ContentType"] == "application/pdf"


@pytest.mark.asyncio
@patch.dict("os.environ", S3_ENV)
@patch("academy.services.s3_service._get_s3_client")
async def test_upload_media_key_layout(mock_get_client):
    mock_get_client.return_value = MagicMock()

    url = await s3_service.upload_media("players", 12, b"jpeg-bytes", "Photo.JPG", "image/jpeg")

    assert url.startswith("https://test-bucket.s3.me-south-1.amazonaws.com/players/12/")
    assert url.endswith(".jpg")


@pytest.mark.asyncio
async def test_upload_media_validation():
    with pytest.raises(ValueError, match="Unknown media folder"):
        await s3_service.upload_media("secrets", 1, b"x", "a.txt")
    with pytest.raises(ValueError, match="File is empty"):
        await s3_service.upload_media("players", 1, b"", "a.jpg")


@pytest.mark.asyncio
@patch.dict("os.environ", S3_ENV)
@patch("academy.services.s3_service._get_s3_client")
async def test_delete_by_url(mock_get_client):
    mock_client = MagicMock()
    mock_get_client.return_value = mock_client

    assert await s3_service.delete_by_url(
        "https://test-bucket.s3.me-south-1.amazonaws.com/players/12/1-abc.jpg"
    ) is True
    mock_client.delete_object.assert_called_once_with(Bucket="test-bucket", Key="players/12/1-abc.jpg")

    assert await s3_service.delete_by_url("https://wrong.s3.me-south-1.amazonaws.com/players/1.jpg") is False


@pytest.mark.asyncio
@patch.dict("os.environ", S3_ENV)
@patch("academy.services.s3_service._get_s3_client")
async def test_delete_is_best_effort(mock_get_client):
    mock_client = MagicMock()
    mock_client.delete_object.side_effect = RuntimeError("access denied")
    mock_get_client.return_value = mock_client

    assert await s3_service.delete_file("players/12/1-abc.jpg") is False
