"""Tests for image upload storage (local directory and Azure Blob Storage)."""

import io
import re
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from starlette.datastructures import Headers, UploadFile

from quillpost.services.errors import UploadRejected
from quillpost.services.uploads import (
    clear_uploads,
    discard_images,
    save_images,
    unique_filename,
    validate_blob_path_segment,
)


def _upload(filename, data=b"img", content_type="image/png"):
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


@pytest.fixture
def blob_container(mock_settings, mocker):
    """Switch uploads to blob storage backed by a mock container client."""
    mock_settings.azure_storage_account = "quillpostdata"
    container = MagicMock()

    def get_blob_client(name):
        blob = MagicMock()
        blob.url = f"https://quillpostdata.blob.core.windows.net/uploads/{name}"
        return blob

    container.get_blob_client.side_effect = get_blob_client
    mocker.patch(
        "quillpost.services.uploads._get_container_client", return_value=container
    )
    return container


class TestNames:
    def test_unique_filename_shape(self):
        name = unique_filename("holiday photo.png")
        assert re.fullmatch(r"\d{13}-\d+-holiday_photo\.png", name)

    def test_unique_filenames_differ(self):
        assert unique_filename("a.png") != unique_filename("a.png")

    def test_hidden_or_missing_names(self):
        assert unique_filename("..png").endswith("-png")
        assert unique_filename(None).endswith("-image")

    def test_path_traversal_neutralised(self):
        name = unique_filename("../../etc/passwd")
        assert "/" not in name
        assert validate_blob_path_segment(name) == name

    @pytest.mark.parametrize("bad", ["", "../x.png", "a/b.png", "a\\b.png", ".hidden"])
    def test_validate_rejects_unsafe(self, bad):
        with pytest.raises(ValueError):
            validate_blob_path_segment(bad)


class TestLocalStorage:
    async def test_saves_files_and_returns_urls(self, mock_settings):
        urls = await save_images(
            [_upload("a.png", b"one"), _upload("b.gif", b"two", "image/gif")],
            "http://localhost:8000/",
        )

        assert len(urls) == 2
        assert all(u.startswith("http://localhost:8000/uploads/") for u in urls)
        stored = Path(mock_settings.upload_dir) / urls[0].rsplit("/", 1)[1]
        assert stored.read_bytes() == b"one"

    async def test_empty_file_fields_ignored(self, mock_settings):
        assert await save_images([_upload("", b"")], "http://test") == []

    async def test_too_many_files(self, mock_settings):
        mock_settings.upload_max_files = 2
        files = [_upload(f"{i}.png") for i in range(3)]
        with pytest.raises(UploadRejected, match="At most 2 images"):
            await save_images(files, "http://test")

    async def test_rejected_batch_stores_nothing(self, mock_settings):
        files = [_upload("ok.png"), _upload("bad.pdf", content_type="application/pdf")]
        with pytest.raises(UploadRejected):
            await save_images(files, "http://test")
        assert not Path(mock_settings.upload_dir).exists()

    async def test_clear_uploads(self, mock_settings):
        await save_images([_upload("a.png"), _upload("b.png")], "http://test")
        assert await clear_uploads() == 2
        assert list(Path(mock_settings.upload_dir).iterdir()) == []

    async def test_clear_without_directory(self, mock_settings):
        assert await clear_uploads() == 0

    async def test_discard_removes_only_given_images(self, mock_settings):
        kept, dropped = await save_images(
            [_upload("keep.png"), _upload("drop.png")], "http://test"
        )

        assert await discard_images([dropped]) == 1
        remaining = [p.name for p in Path(mock_settings.upload_dir).iterdir()]
        assert remaining == [kept.rsplit("/", 1)[1]]

    async def test_discard_rejects_unsafe_names(self, mock_settings):
        with pytest.raises(ValueError):
            await discard_images(["http://test/uploads/..%2f..%2fsecret"])


class TestBlobStorage:
    async def test_uploads_with_content_type(self, blob_container):
        urls = await save_images([_upload("a.png", b"data")], "http://test")

        assert urls[0].startswith("https://quillpostdata.blob.core.windows.net/uploads/")
        assert urls[0].endswith("-a.png")
        name = blob_container.get_blob_client.call_args.args[0]
        assert urls[0].endswith(name)

    async def test_clear_deletes_every_blob(self, blob_container):
        blobs = [MagicMock(), MagicMock()]
        blobs[0].name, blobs[1].name = "1-1-a.png", "2-2-b.png"
        blob_container.list_blobs.return_value = blobs

        assert await clear_uploads() == 2
        deleted = [c.args[0] for c in blob_container.delete_blob.call_args_list]
        assert deleted == ["1-1-a.png", "2-2-b.png"]

    async def test_discard_deletes_blobs(self, blob_container):
        removed = await discard_images(
            ["https://quillpostdata.blob.core.windows.net/uploads/1-2-a.png"]
        )

        assert removed == 1
        blob_container.delete_blob.assert_called_once_with("1-2-a.png")
