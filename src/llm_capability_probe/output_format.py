"""Plain-text rendering of probe results for the command line."""

import json
from collections.abc import Sequence
from typing import NamedTuple

from llm_capability_probe.probing.inference import summarize_probe_result
from llm_capability_probe.probing.types import ModelProbeResult

PROBE_TABLE_HEADERS: tuple[str, ...] = (
    "Provider",
    "Model",
    "Vision",
    "PDF",
    "PDF-Img",
    "Base64",
    "ImgFirst",
    "Shape",
    "Status",
)

DEFAULT_MAX_MODEL_LEN = 35

# ASCII only; some Windows consoles cannot encode check marks
SYM_YES = "Y"
SYM_NO = "N"
SYM_PARTIAL = "~"
SYM_NA = "-"

_SHAPE_PREFIXES = (("openai.", "oai."), ("anthropic.", "ant."), ("gemini.", "gem."))


class ProbeTableRow(NamedTuple):
    provider: str
    model: str
    vision: str
    pdf_native: str
    pdf_images: str
    base64_required: str
    images_first: str
    message_shape: str
    status: str


def truncate_model(model: str, max_len: int) -> str:
    """Shorten a model id from the left, keeping its distinctive suffix."""
    if len(model) <= max_len:
        return model
    return "..." + model[-(max_len - 3) :]


def shorten_shape(shape: str) -> str:
    for prefix, short in _SHAPE_PREFIXES:
        if shape.startswith(prefix):
            return short + shape[len(prefix) :]
    return shape


def format_status(result: ModelProbeResult) -> str:
    """``OK``, ``PARTIAL`` when some probe reported an issue, else ``FAILED``."""
    summary = summarize_probe_result(result)
    if not summary.success:
        return "FAILED"
    return "PARTIAL" if summary.issues else "OK"


def format_probe_table_row(
    result: ModelProbeResult, max_model_len: int = DEFAULT_MAX_MODEL_LEN
) -> ProbeTableRow:
    """Convert a probe result into a table row.

    Symbols: ``Y`` supported, ``~`` vision with an ordering quirk, ``N`` not
    supported, ``-`` not applicable or unknown because the text probe failed.
    """
    summary = summarize_probe_result(result)
    caps = result.capabilities
    model = truncate_model(result.model, max_model_len)
    status = format_status(result)

    if not result.text_probe.success:
        return ProbeTableRow(result.provider, model, *([SYM_NA] * 6), status)

    vision = {"yes": SYM_YES, "partial": SYM_PARTIAL}.get(summary.vision, SYM_NO)
    return ProbeTableRow(
        provider=result.provider,
        model=model,
        vision=vision,
        pdf_native=SYM_YES if caps.supports_pdf_native else SYM_NO,
        pdf_images=SYM_YES if caps.supports_pdf_as_images else SYM_NO,
        base64_required=SYM_YES if caps.requires_base64_images else SYM_NA,
        images_first=SYM_YES if caps.requires_images_first else SYM_NA,
        message_shape=shorten_shape(caps.message_shape),
        status=status,
    )


def compute_column_widths(
    rows: Sequence[Sequence[str]],
    headers: Sequence[str] = PROBE_TABLE_HEADERS,
) -> list[int]:
    return [
        max(len(value) for value in [header, *(row[i] for row in rows)])
        for i, header in enumerate(headers)
    ]


def render_table(
    rows: Sequence[Sequence[str]],
    headers: Sequence[str] = PROBE_TABLE_HEADERS,
) -> list[str]:
    """Render rows as aligned text lines: header, separator, then rows."""
    widths = compute_column_widths(rows, headers)
    header_line = " | ".join(h.ljust(w) for h, w in zip(headers, widths))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [
        " | ".join(value.ljust(w) for value, w in zip(row, widths)) for row in rows
    ]
    return [header_line, separator, *row_lines]


def render_minimal(results: Sequence[ModelProbeResult]) -> list[str]:
    lines = []
    for result in results:
        status = "OK" if summarize_probe_result(result).success else "FAIL"
        lines.append(f"{result.provider}:{result.model} - {status}")
    return lines


def render_json(results: Sequence[ModelProbeResult]) -> str:
    """Serialize results with camelCase field names."""
    return json.dumps(
        [result.model_dump(mode="json", by_alias=True) for result in results],
        indent=2,
    )
