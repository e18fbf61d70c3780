# SPDX-License-Identifier: Apache-2.0
"""Export pipeline implementation.

One export runs three in-memory stages over the template bytes (form fill,
annotation rendering, drawing overlay) and then writes the result. A
failure in any stage is recovered by writing a verbatim copy of the
template instead, and the result is marked as degraded.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any, Mapping, Optional, Union

import pypdfium2 as pdfium  # type: ignore[import-untyped]

from pdf_form_export.core.annotation_renderer import (
    AnnotationPayload,
    AnnotationRenderer,
    parse_annotations,
)
from pdf_form_export.core.drawing_overlay import DrawingOverlay
from pdf_form_export.core.fonts import FontKey
from pdf_form_export.core.form_filler import FormFiller, parse_form_data_json
from pdf_form_export.core.models import DEFAULT_FONT_SIZE, Draft, Template
from pdf_form_export.pipeline.errors import (
    AnnotationRenderError,
    DrawingOverlayError,
    ExportError,
    FormFillError,
    OutputWriteError,
    TemplateReadError,
)
from pdf_form_export.pipeline.progress import ProgressCallback
from pdf_form_export.pipeline.retry import retry_file_operation
from pdf_form_export.storage.paths import output_path_for

logger = logging.getLogger(__name__)

FormDataPayload = Union[Mapping[str, Any], str, None]

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})

# PDFium is not thread-safe, so concurrent exports take turns on it
_PDFIUM_LOCK = threading.Lock()


@dataclass
class ExportConfig:
    """Export pipeline configuration."""

    # Output delete/write attempts and the fixed delay between them
    max_retries: int = 3
    retry_delay: float = 0.1

    # If False, one failing annotation aborts rendering and degrades the export
    isolate_annotation_errors: bool = True
    default_font_size: float = DEFAULT_FONT_SIZE

    # qpdf flattening mode: "all", "print" or "screen"
    flatten_mode: str = "all"

    drawing_page: int = 1  # 1-indexed
    composite_drawing: bool = True

    # (family, bold, italic) -> standard font name
    # If None, uses STANDARD_FONT_TABLE
    font_table: Mapping[FontKey, str] | None = None

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")

    @classmethod
    def from_env(cls) -> ExportConfig:
        """Build a config from PDF_EXPORT_* environment variables.

        Unset variables keep their defaults.
        """
        isolate = os.getenv("PDF_EXPORT_ISOLATE_ANNOTATIONS")
        return cls(
            max_retries=int(os.getenv("PDF_EXPORT_MAX_RETRIES", "3")),
            retry_delay=float(os.getenv("PDF_EXPORT_RETRY_DELAY", "0.1")),
            isolate_annotation_errors=(
                True if isolate is None else isolate.strip().lower() in _TRUE_VALUES
            ),
        )


@dataclass
class ExportRequest:
    """Inputs for one export.

    Attributes:
        template_path: Template PDF (must exist)
        draft_id: Names the output file
        output_root: Directory that holds exports
        form_data: Field name -> value mapping, or the same as JSON text
        annotations: Annotation list, JSON text, or None
        drawing_path: PNG drawing to composite, if any
        user_id: Optional namespace directory under output_root
    """

    template_path: Union[Path, str]
    draft_id: str
    output_root: Union[Path, str]
    form_data: FormDataPayload = None
    annotations: AnnotationPayload = None
    drawing_path: Union[Path, str, None] = None
    user_id: Optional[str] = None

    @property
    def output_path(self) -> Path:
        return output_path_for(self.output_root, self.draft_id, self.user_id)


class ExportStatus(str, Enum):
    """Whether the export carries the requested content."""

    FULL = "full"
    DEGRADED = "degraded"  # template copied verbatim after a stage failure


@dataclass
class ExportResult:
    """Export pipeline result."""

    output_path: Path
    status: ExportStatus = ExportStatus.FULL
    reason: str | None = None
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def is_degraded(self) -> bool:
        return self.status is ExportStatus.DEGRADED


def _empty_stats() -> dict[str, Any]:
    return {
        "fields_total": 0,
        "fields_filled": 0,
        "fields_skipped": 0,
        "annotations_rendered": 0,
        "annotations_skipped": 0,
        "annotations_failed": 0,
        "drawing_composited": False,
    }


def load_form_data(payload: FormDataPayload) -> dict[str, Any]:
    """Normalize a form data payload to a dict.

    JSON text is decoded with parse_form_data_json, so member values keep
    their literal text.

    Raises:
        ValueError: If JSON text is invalid or the value is not an object.
    """
    if payload is None:
        return {}
    if isinstance(payload, str):
        try:
            return parse_form_data_json(payload)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Form data is not valid JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ValueError(f"Form data must be a JSON object, got {type(payload).__name__}")
    return dict(payload)


class ExportPipeline:
    """Produce one flattened, annotated PDF per draft.

    Example:
        >>> pipeline = ExportPipeline()
        >>> result = pipeline.export_sync(
        ...     ExportRequest("form.pdf", "draft-1", "exports", form_data={"name": "Jane"})
        ... )
        >>> result.status
        <ExportStatus.FULL: 'full'>
    """

    def __init__(
        self,
        config: ExportConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Initialize ExportPipeline."""
        self._config = config or ExportConfig()
        self._progress_callback = progress_callback
        self._filler = FormFiller(flatten_mode=self._config.flatten_mode)
        self._renderer = AnnotationRenderer(
            font_table=self._config.font_table,
            default_font_size=self._config.default_font_size,
            isolate_errors=self._config.isolate_annotation_errors,
        )
        self._overlay = DrawingOverlay(page_number=self._config.drawing_page)

    @property
    def config(self) -> ExportConfig:
        return self._config

    async def export(self, request: ExportRequest) -> ExportResult:
        """Run export_sync in a worker thread."""
        return await asyncio.to_thread(self.export_sync, request)

    def export_sync(self, request: ExportRequest) -> ExportResult:
        """Export a draft and write the output file.

        Args:
            request: Export inputs.

        Returns:
            ExportResult. A degraded result means the template was written
            unchanged because a processing stage failed.

        Raises:
            FileNotFoundError: If the template does not exist.
            TemplateReadError: If the template cannot be read.
            OutputWriteError: If the output cannot be written after all retries.
            ValueError: If draft_id or user_id is not a valid path segment.
        """
        template_path = Path(request.template_path)
        if not template_path.exists():
            raise FileNotFoundError(f"Template not found: {template_path}")
        output_path = request.output_path.resolve()

        try:
            template_bytes = template_path.read_bytes()
        except OSError as exc:
            raise TemplateReadError(
                f"Could not read template {template_path}", cause=exc
            ) from exc

        stats = _empty_stats()
        status = ExportStatus.FULL
        reason: str | None = None
        try:
            pdf_bytes = self._process(template_bytes, request, stats)
        except Exception as exc:
            error = exc if isinstance(exc, ExportError) else ExportError(
                "Processing failed", stage="process", cause=exc
            )
            logger.warning(
                "Export of %s degraded, writing template copy: %s",
                request.draft_id,
                error,
                exc_info=True,
            )
            pdf_bytes = template_bytes
            stats = _empty_stats()
            status = ExportStatus.DEGRADED
            reason = str(error)

        self._write_output(output_path, pdf_bytes)
        self._notify("write", 1, 1, str(output_path))

        logger.info("Exported %s to %s (%s)", request.draft_id, output_path, status.value)
        return ExportResult(output_path=output_path, status=status, reason=reason, stats=stats)

    def export_draft(
        self,
        template: Template,
        draft: Draft,
        output_root: Union[Path, str],
        user_id: Optional[str] = None,
    ) -> ExportResult:
        """Export a saved draft of a template.

        Raises:
            ValueError: If the draft belongs to a different template.
        """
        if draft.template_id != template.id:
            raise ValueError(
                f"Draft {draft.id} belongs to template {draft.template_id}, not {template.id}"
            )
        request = ExportRequest(
            template_path=template.stored_path,
            draft_id=draft.id,
            output_root=output_root,
            form_data=draft.form_data,
            annotations=draft.annotations,
            drawing_path=draft.drawing_path,
            user_id=user_id,
        )
        return self.export_sync(request)

    def _process(
        self,
        template_bytes: bytes,
        request: ExportRequest,
        stats: dict[str, Any],
    ) -> bytes:
        pdf_bytes = self._stage_fill(template_bytes, request.form_data, stats)

        try:
            annotations = parse_annotations(request.annotations)
        except ValueError as exc:
            raise AnnotationRenderError("Malformed annotation payload", cause=exc) from exc

        drawing_path = request.drawing_path if self._config.composite_drawing else None
        if not annotations and drawing_path is None:
            return pdf_bytes

        with _PDFIUM_LOCK:
            pdf = pdfium.PdfDocument(pdf_bytes)
            try:
                if annotations:
                    self._stage_annotate(pdf, annotations, stats)
                if drawing_path is not None:
                    self._stage_overlay(pdf, drawing_path, stats)

                buffer = BytesIO()
                pdf.save(buffer)
                return buffer.getvalue()
            finally:
                pdf.close()

    def _stage_fill(
        self,
        template_bytes: bytes,
        form_data: FormDataPayload,
        stats: dict[str, Any],
    ) -> bytes:
        try:
            values = load_form_data(form_data)
            pdf_bytes, report = self._filler.process_bytes(template_bytes, values)
        except Exception as exc:
            raise FormFillError("Form filling failed", cause=exc) from exc

        stats["fields_total"] = report.fields_total
        stats["fields_filled"] = report.fields_filled
        stats["fields_skipped"] = len(report.skipped)
        self._notify("fill", report.fields_filled, report.fields_total)
        return pdf_bytes

    def _stage_annotate(
        self,
        pdf: pdfium.PdfDocument,
        annotations: list[Any],
        stats: dict[str, Any],
    ) -> None:
        try:
            report = self._renderer.render(pdf, annotations)
        except Exception as exc:
            raise AnnotationRenderError("Annotation rendering failed", cause=exc) from exc

        stats["annotations_rendered"] = report.rendered
        stats["annotations_skipped"] = report.skipped + report.failed
        stats["annotations_failed"] = report.failed
        self._notify("annotate", report.rendered, len(annotations))

    def _stage_overlay(
        self,
        pdf: pdfium.PdfDocument,
        drawing_path: Union[Path, str],
        stats: dict[str, Any],
    ) -> None:
        try:
            composited = self._overlay.apply(pdf, drawing_path)
        except Exception as exc:
            raise DrawingOverlayError(
                f"Could not composite drawing {drawing_path}", cause=exc
            ) from exc

        stats["drawing_composited"] = composited
        self._notify("overlay", int(composited), 1)

    def _write_output(self, output_path: Path, data: bytes) -> None:
        """Replace the output file, retrying on OSError."""

        def write() -> None:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.unlink(missing_ok=True)
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{output_path.stem}.", suffix=".tmp", dir=output_path.parent
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(temp_name, output_path)
            finally:
                # No-op once the temp file has been renamed into place
                Path(temp_name).unlink(missing_ok=True)

        try:
            retry_file_operation(
                write,
                max_retries=self._config.max_retries,
                delay=self._config.retry_delay,
            )
        except OSError as exc:
            raise OutputWriteError(f"Could not write {output_path}", cause=exc) from exc

    def _notify(self, stage: str, current: int, total: int, message: str = "") -> None:
        if self._progress_callback is None:
            return
        self._progress_callback(stage, current, total, message)
