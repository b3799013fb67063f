"""
utils.py - Size formatting and file-name helpers.
"""

import math
import re
from typing import Iterable

SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


def format_file_size(num_bytes: int) -> str:
    """Human readable size: 0 -> '0 Bytes', 1536 -> '1.5 KB'."""
    if num_bytes <= 0:
        return "0 Bytes"
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(SIZE_UNITS) - 1:
        value /= 1024
        i += 1
    value = float(f"{value:.2f}")
    return f"{value:g} {SIZE_UNITS[i]}"


def compression_ratio(original: int, compressed: int) -> int:
    """Percentage saved, rounded half up. Negative when the output grew."""
    if original <= 0:
        return 0
    return int(math.floor((original - compressed) / original * 100 + 0.5))


def replace_extension(name: str, extensions: Iterable[str], new_suffix: str) -> str:
    """
    Swap a recognized trailing extension for new_suffix (case-insensitive).

    Names without one of the recognized extensions get new_suffix appended.
    """
    alternatives = "|".join(re.escape(ext.lstrip(".")) for ext in extensions)
    pattern = re.compile(rf"\.({alternatives})$", re.IGNORECASE)
    if pattern.search(name):
        return pattern.sub(new_suffix, name)
    return name + new_suffix


def strip_extension(name: str, extension: str) -> str:
    """Drop one trailing extension, leaving other names untouched."""
    if name.lower().endswith(extension.lower()):
        return name[: -len(extension)]
    return name
