# SPDX-License-Identifier: Apache-2.0
"""Storage layout and drawing intake."""

from .drawings import (
    PNG_DATA_URL_PREFIX,
    InvalidDrawingError,
    decode_drawing_data_url,
    save_drawing_data_url,
)
from .paths import StoragePaths, output_path_for, validate_path_component

__all__ = [
    "InvalidDrawingError",
    "PNG_DATA_URL_PREFIX",
    "StoragePaths",
    "decode_drawing_data_url",
    "output_path_for",
    "save_drawing_data_url",
    "validate_path_component",
]
