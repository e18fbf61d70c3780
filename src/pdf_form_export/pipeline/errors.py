# SPDX-License-Identifier: Apache-2.0
"""Export pipeline error definitions."""

from __future__ import annotations


class ExportError(Exception):
    """Base exception for export pipeline errors."""

    default_stage = "export"

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage or self.default_stage
        self.cause = cause

    def __str__(self) -> str:
        text = f"[{self.stage}] {self.message}"
        if self.cause is not None:
            text += f" (caused by {type(self.cause).__name__}: {self.cause})"
        return text


class TemplateReadError(ExportError):
    """Template file exists but could not be read."""

    default_stage = "read"


class FormFillError(ExportError):
    """Form field filling or flattening failed."""

    default_stage = "fill"


class AnnotationRenderError(ExportError):
    """Annotation payload or rendering failed."""

    default_stage = "annotate"


class DrawingOverlayError(ExportError):
    """Drawing image could not be composited."""

    default_stage = "overlay"


class OutputWriteError(ExportError):
    """Output file could not be written after all retries."""

    default_stage = "write"
