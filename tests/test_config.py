from __future__ import annotations

from pathlib import Path

import pytest

from fileease import config
from fileease.errors import InputRejected


@pytest.mark.parametrize("mime", config.ALLOWED_MIME_TYPES)
def test_check_input_accepts_allowed_types(mime: str) -> None:
    config.check_input("file", mime, config.MAX_INPUT_BYTES)


def test_check_input_rejects_type() -> None:
    with pytest.raises(InputRejected, match="unsupported type image/gif"):
        config.check_input("anim.gif", "image/gif", 10)


def test_check_input_rejects_missing_type() -> None:
    with pytest.raises(InputRejected):
        config.check_input("blob", None, 10)


def test_check_input_rejects_size() -> None:
    with pytest.raises(InputRejected, match="50 MB"):
        config.check_input("huge.pdf", "application/pdf", config.MAX_INPUT_BYTES + 1)


@pytest.mark.parametrize(
    "name,expected",
    [("a.JPG", "image/jpeg"), ("b.jpeg", "image/jpeg"), ("c.png", "image/png"), ("d.pdf", "application/pdf")],
)
def test_guess_mime_type(name: str, expected: str) -> None:
    assert config.guess_mime_type(Path(name)) == expected
