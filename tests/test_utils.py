from __future__ import annotations

import pytest

from fileease.utils import compression_ratio, format_file_size, replace_extension, strip_extension


@pytest.mark.parametrize(
    "size,expected",
    [
        (0, "0 Bytes"),
        (512, "512 Bytes"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (1234567, "1.18 MB"),
        (5 * 1024 ** 3, "5 GB"),
        (3 * 1024 ** 4, "3072 GB"),
    ],
)
def test_format_file_size(size: int, expected: str) -> None:
    assert format_file_size(size) == expected


def test_compression_ratio() -> None:
    assert compression_ratio(1000, 500) == 50
    assert compression_ratio(1000, 1000) == 0
    assert compression_ratio(1000, 1500) == -50
    assert compression_ratio(8, 7) == 13  # 12.5 rounds up
    assert compression_ratio(0, 10) == 0


def test_replace_extension() -> None:
    exts = (".jpg", ".jpeg", ".png")
    assert replace_extension("photo.JPEG", exts, ".png") == "photo.png"
    assert replace_extension("scan.png", exts, ".jpg") == "scan.jpg"
    assert replace_extension("archive.png.jpg", exts, ".pdf") == "archive.png.pdf"
    assert replace_extension("noext", exts, ".pdf") == "noext.pdf"


def test_strip_extension() -> None:
    assert strip_extension("Report.PDF", ".pdf") == "Report"
    assert strip_extension("report.txt", ".pdf") == "report.txt"
