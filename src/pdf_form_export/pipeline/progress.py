# SPDX-License-Identifier: Apache-2.0
"""Progress callback protocol for the export pipeline."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

# Stages reported by ExportPipeline, in execution order
EXPORT_STAGES = ("fill", "annotate", "overlay", "write")


@runtime_checkable
class ProgressCallback(Protocol):
    """Receives stage notifications from an export.

    ``current`` and ``total`` are stage-specific counts, for example fields
    filled out of fields present, or annotations drawn out of annotations
    given.
    """

    def __call__(
        self,
        stage: str,
        current: int,
        total: int,
        message: str = "",
    ) -> None: ...
