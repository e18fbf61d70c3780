# SPDX-License-Identifier: Apache-2.0
"""Decode drawing canvas payloads into PNG files."""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Union

from .paths import validate_path_component

logger = logging.getLogger(__name__)

PNG_DATA_URL_PREFIX = "data:image/png;base64,"


class InvalidDrawingError(ValueError):
    """Drawing payload is not a base64 PNG data URL."""


def decode_drawing_data_url(data_url: str) -> bytes:
    """Decode a ``data:image/png;base64,`` URL.

    The prefix is matched case-insensitively and may be preceded by other
    text, as canvas exports sometimes are.

    Raises:
        InvalidDrawingError: If the prefix is missing or the payload is not
            valid base64.
    """
    index = data_url.lower().find(PNG_DATA_URL_PREFIX)
    if index < 0:
        raise InvalidDrawingError("Drawing must be a data:image/png;base64 URL")

    payload = data_url[index + len(PNG_DATA_URL_PREFIX):].strip()
    try:
        data = base64.b64decode(payload, validate=True)
    except ValueError as exc:
        raise InvalidDrawingError("Invalid base64 drawing payload") from exc
    if not data:
        raise InvalidDrawingError("Drawing payload is empty")
    return data


def save_drawing_data_url(
    data_url: str, directory: Union[Path, str], draft_id: str
) -> Path:
    """Decode a drawing and store it as ``<directory>/<draft_id>.png``.

    Returns:
        Path of the written PNG.

    Raises:
        InvalidDrawingError: If the payload cannot be decoded.
    """
    data = decode_drawing_data_url(data_url)
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / f"{validate_path_component(draft_id, 'draft id')}.png"
    path.write_bytes(data)
    logger.debug("Saved %d byte drawing to %s", len(data), path)
    return path
