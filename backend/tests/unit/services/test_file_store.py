"""
Unit Tests for uploaded document storage
"""
import pytest

from dataconfirm.core.exceptions import (
    FileTooLargeError,
    InvalidFileTypeError,
    StoredFileNotFoundError,
)
from dataconfirm.services.file_store import FileStore, file_extension


@pytest.fixture
def store(tmp_path) -> FileStore:
    return FileStore(tmp_path / "uploads", allowed_extensions=["pdf", "docx"], max_size=1024)


class TestValidation:

    def test_extension_is_lowercased(self):
        assert file_extension("Spesifikasi.PDF") == "pdf"
        assert file_extension("noext") == ""

    def test_disallowed_extension(self, store):
        with pytest.raises(InvalidFileTypeError) as exc_info:
            store.validate("payload.exe", 10)

        assert exc_info.value.details["file_type"] == "exe"

    def test_too_large(self, store):
        with pytest.raises(FileTooLargeError):
            store.validate("dokumen.pdf", 2048)


class TestSaveAndResolve:

    async def test_save_writes_under_generated_name(self, store):
        stored_name = await store.save("request", "Contoh Request.pdf", b"%PDF-1.4 test")

        assert stored_name.endswith("_request.pdf")
        assert " " not in stored_name
        assert store.resolve(stored_name).read_bytes() == b"%PDF-1.4 test"

    async def test_question_id_is_sanitised(self, store):
        stored_name = await store.save("../../etc/passwd", "a.pdf", b"x")

        assert "/" not in stored_name
        assert store.resolve(stored_name).parent == store.base_dir.resolve()

    async def test_rejected_file_not_written(self, store):
        with pytest.raises(InvalidFileTypeError):
            await store.save("request", "script.sh", b"rm -rf /")

        assert not store.base_dir.exists() or list(store.base_dir.iterdir()) == []

    async def test_two_saves_get_distinct_names(self, store):
        first = await store.save("request", "a.pdf", b"1")
        second = await store.save("request", "a.pdf", b"2")

        assert first != second

    def test_traversal_rejected(self, store, tmp_path):
        (tmp_path / "secret.pdf").write_bytes(b"secret")
        store.base_dir.mkdir(parents=True)

        with pytest.raises(StoredFileNotFoundError):
            store.resolve("../secret.pdf")

    def test_missing_file(self, store):
        store.base_dir.mkdir(parents=True)

        with pytest.raises(StoredFileNotFoundError):
            store.resolve("nothing.pdf")

    async def test_delete(self, store):
        stored_name = await store.save("request", "a.pdf", b"1")

        assert await store.delete(stored_name) is True
        assert await store.delete(stored_name) is False
