from datetime import datetime

import pytest

from marketplace.core.errors import ValidationError
from marketplace.services.storage_service import StorageService, build_object_path
from marketplace.utils.file_upload import validate_upload, get_file_extension


def test_object_path_layout():
    now = datetime.fromtimestamp(1727776800)

    assert build_object_path(42, "portfolios", ".pdf", now) == "42/portfolios/1727776800000.pdf"
    assert build_object_path(42, "verification", "png", now) == "42/verification/1727776800000.png"


def test_unknown_category():
    with pytest.raises(ValidationError):
        build_object_path(42, "avatars", ".png")


def test_upload_writes_file_and_returns_public_url(tmp_path):
    storage = StorageService(root=str(tmp_path), public_url="https://cdn.example.org/files/")

    url = storage.upload(b"hello", "7/portfolios/1.txt")

    assert url == "https://cdn.example.org/files/7/portfolios/1.txt"
    assert (tmp_path / "7" / "portfolios" / "1.txt").read_bytes() == b"hello"


def test_upload_refuses_paths_outside_root(tmp_path):
    storage = StorageService(root=str(tmp_path / "root"), public_url="http://localhost/files")

    with pytest.raises(ValidationError):
        storage.upload(b"x", "../escape.txt")
    assert not (tmp_path / "escape.txt").exists()


def test_extension_is_case_insensitive():
    assert get_file_extension("Report.PDF") == ".pdf"
    assert get_file_extension("README") == ""


@pytest.mark.parametrize("filename,content,category", [
    ("cv.exe", b"MZ", "portfolios"),
    ("notes.txt", b"plain", "verification"),
    ("cv.pdf", b"", "portfolios"),
    ("", b"data", "portfolios"),
])
def test_invalid_uploads(filename, content, category):
    with pytest.raises(ValidationError):
        validate_upload(filename, content, category)


def test_oversized_upload(monkeypatch):
    from marketplace.core.config import get_settings
    monkeypatch.setattr(get_settings(), "max_upload_mb", 1)

    with pytest.raises(ValidationError) as exc:
        validate_upload("big.pdf", b"0" * (1024 * 1024 + 1), "portfolios")
    assert "1MB" in exc.value.message
