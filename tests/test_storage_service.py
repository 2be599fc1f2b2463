from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from media_pipeline.config import StorageConfig
from media_pipeline.errors import StorageError
from media_pipeline.storage_service import (
    R2StorageService,
    StoragePaths,
    get_storage_prefix,
    generate_unique_filename,
    extract_file_key_from_url,
    is_internal_media_url,
)


def storage_config(**overrides):
    values = dict(
        account_id="acc123",
        access_key="AKIA",
        secret_key="secret",
        bucket="listing-media",
        endpoint="",
        region="auto",
        public_domain="media.example.com",
        app_base_url="https://app.example.com",
        branch="main",
        signed_url_ttl=3600,
    )
    values.update(overrides)
    return StorageConfig(**values)


@pytest.mark.unit
class TestKeys:

    @pytest.mark.parametrize("branch, prefix", [
        (None, "main"),
        ("", "main"),
        ("main", "main"),
        ("feature/new-ui", "branch-feature-new-ui"),
        ("fix_123", "branch-fix_123"),
    ])
    def test_prefix(self, branch, prefix):
        assert get_storage_prefix(branch) == prefix

    def test_paths(self):
        paths = StoragePaths.for_branch("preview")
        assert paths.project("p1", "ai-enhanced", "a.jpg") == "branch-preview/projects/p1/ai-enhanced/a.jpg"
        assert paths.project_version("p1", 3, "a.jpg") == "branch-preview/projects/p1/versions/3/a.jpg"
        assert paths.global_media("edited", "a.png") == "branch-preview/global/edited/a.png"

    def test_unknown_project_folder(self):
        with pytest.raises(ValueError):
            StoragePaths("main").project("p1", "thumbnails", "a.jpg")

    def test_unique_filename(self):
        assert generate_unique_filename("My Photo (1).JPG", now_ms=1700000000000) == "my-photo-1-1700000000000.jpg"
        assert generate_unique_filename("???.png", now_ms=5) == "image-5.png"


@pytest.mark.unit
class TestKeyExtraction:

    def test_app_media_route(self):
        url = "https://app.example.com/api/media/main/projects/p1/original/living%20room.jpg"
        assert extract_file_key_from_url(url) == "main/projects/p1/original/living room.jpg"

    def test_direct_r2_url(self):
        url = "https://acc123.r2.cloudflarestorage.com/listing-media/main/global/edited/a.png"
        assert extract_file_key_from_url(url) == "main/global/edited/a.png"

    def test_public_domain(self):
        url = "https://media.example.com/main/projects/p1/edited/a.png"
        assert extract_file_key_from_url(url, public_domain="https://media.example.com/") == "main/projects/p1/edited/a.png"
        assert extract_file_key_from_url(url) is None

    def test_external_url(self):
        assert extract_file_key_from_url("https://photos.example.org/a.jpg", "media.example.com") is None
        assert not is_internal_media_url("https://photos.example.org/a.jpg", "media.example.com")
        assert extract_file_key_from_url("") is None


@pytest.mark.unit
class TestR2StorageService:

    def test_put_returns_public_url(self):
        s3 = MagicMock()
        service = R2StorageService(storage_config(), s3_client=s3)

        url = service.put(b"bytes", "main/global/ai-enhanced/a.jpg", "image/jpeg")

        assert url == "https://media.example.com/main/global/ai-enhanced/a.jpg"
        s3.put_object.assert_called_once_with(
            Bucket="listing-media",
            Key="main/global/ai-enhanced/a.jpg",
            Body=b"bytes",
            ContentType="image/jpeg",
        )

    def test_put_without_public_domain_uses_app_route(self):
        service = R2StorageService(storage_config(public_domain=""), s3_client=MagicMock())
        assert service.put(b"x", "main/a.png", "image/png") == "https://app.example.com/api/media/main/a.png"

    def test_put_failure(self):
        s3 = MagicMock()
        s3.put_object.side_effect = ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")
        service = R2StorageService(storage_config(), s3_client=s3)
        with pytest.raises(StorageError):
            service.put(b"x", "main/a.png")

    def test_signed_get(self):
        s3 = MagicMock()
        s3.generate_presigned_url.return_value = "https://acc123.r2.cloudflarestorage.com/signed"
        service = R2StorageService(storage_config(), s3_client=s3)

        assert service.signed_get("main/a.png", 600) == "https://acc123.r2.cloudflarestorage.com/signed"
        s3.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "listing-media", "Key": "main/a.png"},
            ExpiresIn=600,
        )

    def test_delete(self):
        s3 = MagicMock()
        assert R2StorageService(storage_config(), s3_client=s3).delete("main/a.png")
        s3.delete_object.assert_called_once_with(Bucket="listing-media", Key="main/a.png")

    def test_branch_prefix(self):
        service = R2StorageService(storage_config(branch="feature-x"), s3_client=MagicMock())
        assert service.paths.prefix == "branch-feature-x"

    def test_extract_file_key_uses_public_domain(self):
        service = R2StorageService(storage_config(), s3_client=MagicMock())
        assert service.extract_file_key("https://media.example.com/main/a.png") == "main/a.png"

    def test_endpoint_from_account(self):
        assert storage_config().endpoint_url == "https://acc123.r2.cloudflarestorage.com"

    def test_requires_configuration(self):
        with pytest.raises(ValueError):
            R2StorageService(storage_config(bucket="", access_key="", secret_key=""))
