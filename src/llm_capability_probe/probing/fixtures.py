"""Tiny media fixtures and prompts that keep probe requests cheap."""

import base64

# 56x56 red PNG; 56x56 is the smallest size some VL models accept
TINY_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAADgAAAA4CAIAAAAn5KxJAAAAQElEQVR42u3OQQkAAAgAsetfWh+m"
    "EAYLsKZeSFRUVFRUVFRUVFRUVFRUVFRUVFRUVFRUVFRUVFRUVFRUVFRU9CwicjR1t9nCvQAAAABJ"
    "RU5ErkJggg=="
)
TINY_PNG_MIME_TYPE = "image/png"

_TINY_PDF = b"""%PDF-1.4
1 0 obj<</Type/Catalog/Pages 2 0 R>>endobj
2 0 obj<</Type/Pages/Kids[3 0 R]/Count 1>>endobj
3 0 obj<</Type/Page/MediaBox[0 0 72 72]/Parent 2 0 R/Resources<<>>>>endobj
xref
0 4
0000000000 65535 f
0000000009 00000 n
0000000052 00000 n
0000000101 00000 n
trailer<</Size 4/Root 1 0 R>>
startxref
175
%%EOF"""

TINY_PDF_BASE64 = base64.b64encode(_TINY_PDF).decode("ascii")
TINY_PDF_MIME_TYPE = "application/pdf"

PROBE_PROMPTS: dict[str, str] = {
    "text": 'Respond with just the word "OK" to confirm you received this message.',
    "image": "What color is this image? Reply with just the color name.",
    "pdf": 'This is a test PDF. Reply with just "OK" to confirm you can see it.',
    "schema": 'Reply with just "OK".',
}


def get_tiny_png_data_url() -> str:
    """Data URL for the PNG fixture."""
    return f"data:{TINY_PNG_MIME_TYPE};base64,{TINY_PNG_BASE64}"


def get_tiny_pdf_data_url() -> str:
    """Data URL for the PDF fixture."""
    return f"data:{TINY_PDF_MIME_TYPE};base64,{TINY_PDF_BASE64}"


def get_fixture_stats() -> dict[str, int]:
    """Decoded fixture sizes in bytes, for verbose logging."""
    return {
        "png_size_bytes": len(base64.b64decode(TINY_PNG_BASE64)),
        "pdf_size_bytes": len(_TINY_PDF),
    }
