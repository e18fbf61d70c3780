# SPDX-License-Identifier: Apache-2.0
"""Export pipeline package."""

from .errors import (
    AnnotationRenderError,
    DrawingOverlayError,
    ExportError,
    FormFillError,
    OutputWriteError,
    TemplateReadError,
)
from .export_pipeline import (
    ExportConfig,
    ExportPipeline,
    ExportRequest,
    ExportResult,
    ExportStatus,
    load_form_data,
)
from .progress import EXPORT_STAGES, ProgressCallback
from .retry import retry_file_operation

__all__ = [
    "AnnotationRenderError",
    "DrawingOverlayError",
    "EXPORT_STAGES",
    "ExportConfig",
    "ExportError",
    "ExportPipeline",
    "ExportRequest",
    "ExportResult",
    "ExportStatus",
    "FormFillError",
    "OutputWriteError",
    "ProgressCallback",
    "TemplateReadError",
    "load_form_data",
    "retry_file_operation",
]
