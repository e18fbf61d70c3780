# SPDX-License-Identifier: Apache-2.0
"""On-disk storage layout.

::

    <root>/
        templates/              uploaded template PDFs
        images/<user_id>/       drawing overlays (<draft_id>.png)
        exports/<user_id>/      exported PDFs (<draft_id>.pdf)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

STORAGE_ROOT_ENV = "PDF_STORAGE_ROOT"
DEFAULT_STORAGE_ROOT = "storage"


def validate_path_component(value: str, what: str = "identifier") -> str:
    """Ensure an identifier can be used as a single path segment.

    Raises:
        ValueError: If the value is empty, contains a path separator, or
            is a relative directory reference.
    """
    text = str(value)
    if not text or text in (".", ".."):
        raise ValueError(f"Invalid {what}: {value!r}")
    if "/" in text or "\\" in text or "\x00" in text:
        raise ValueError(f"{what} must not contain path separators: {value!r}")
    return text


def output_path_for(
    output_root: Union[Path, str], draft_id: str, user_id: Optional[str] = None
) -> Path:
    """Return the export path for a draft.

    Example:
        >>> output_path_for("/srv/exports", "d1", "u1")
        PosixPath('/srv/exports/u1/d1.pdf')
    """
    directory = Path(output_root)
    if user_id:
        directory = directory / validate_path_component(user_id, "user id")
    return directory / f"{validate_path_component(draft_id, 'draft id')}.pdf"


class StoragePaths:
    """Resolves the storage directories under one root."""

    def __init__(self, root: Union[Path, str]) -> None:
        self._root = Path(root).resolve()

    @classmethod
    def from_env(cls) -> StoragePaths:
        """Use $PDF_STORAGE_ROOT, or ./storage when unset."""
        return cls(os.getenv(STORAGE_ROOT_ENV) or DEFAULT_STORAGE_ROOT)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def templates_dir(self) -> Path:
        return self._root / "templates"

    @property
    def images_root(self) -> Path:
        return self._root / "images"

    @property
    def exports_root(self) -> Path:
        return self._root / "exports"

    def images_dir(self, user_id: str) -> Path:
        return self.images_root / validate_path_component(user_id, "user id")

    def exports_dir(self, user_id: str) -> Path:
        return self.exports_root / validate_path_component(user_id, "user id")

    def export_path(self, user_id: str, draft_id: str) -> Path:
        return output_path_for(self.exports_root, draft_id, user_id)
