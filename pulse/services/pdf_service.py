"""
PDF Service

Turns a report payload into a PDF. The rich reportlab renderer is tried
first; whatever goes wrong there, the report still ships as a plain
single-page PDF 1.4 written by hand with the base Helvetica font.
"""
import asyncio
import re
import unicodedata
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from pulse.config import get_settings
from pulse.services.correlation import TimeSeriesPoint
from pulse.services.report_pdf import generate_report_pdf
from pulse.utils.logger import log

MAX_PDF_LINES = 40
WRAP_WIDTH = 95
EMPTY_DIGEST_LINE = "No digest available for this period."

# Letter-size page, 12pt Helvetica on a 14pt leading starting top-left
_PAGE_MEDIA_BOX = "[0 0 612 792]"
_TEXT_ORIGIN = "50 760 Td"


@dataclass(frozen=True)
class Kpi:
    label: str
    value: str


@dataclass
class ReportPdfPayload:
    title: str
    period_label: str
    generated_at: str
    kpis: List[Kpi] = field(default_factory=list)
    digest: str = ""
    # Optional daily series; only the rich renderer draws it
    series: Sequence[TimeSeriesPoint] = field(default_factory=list)


class PdfRenderer:
    """A rendering tier that may decline by returning None"""

    name = "base"

    def try_render(self, payload: ReportPdfPayload) -> Optional[bytes]:
        raise NotImplementedError


class ReportLabRenderer(PdfRenderer):
    """A4 layout with KPI grid, trend chart and digest"""

    name = "reportlab"

    def try_render(self, payload: ReportPdfPayload) -> Optional[bytes]:
        content = generate_report_pdf(payload)
        return content or None


class BasicPdfRenderer(PdfRenderer):
    """Hand-built single page; never declines"""

    name = "basic"

    def try_render(self, payload: ReportPdfPayload) -> bytes:
        return build_single_page_pdf(payload_lines(payload)[:MAX_PDF_LINES])


class PdfService:
    """Renders report payloads, falling back to the basic tier on any failure"""

    def __init__(self, advanced: Optional[PdfRenderer] = None):
        self.advanced = advanced
        self.fallback = BasicPdfRenderer()

    @classmethod
    def from_settings(cls) -> "PdfService":
        settings = get_settings()
        if settings.pdf_renderer == "basic":
            return cls(advanced=None)
        return cls(advanced=ReportLabRenderer())

    async def render(self, payload: ReportPdfPayload) -> bytes:
        if self.advanced is not None:
            try:
                content = await asyncio.to_thread(self.advanced.try_render, payload)
                if content:
                    return content
                log.warning(f"PDF renderer '{self.advanced.name}' returned nothing, using basic renderer")
            except Exception as e:
                log.warning(f"PDF renderer '{self.advanced.name}' failed ({type(e).__name__}: {e}), using basic renderer")

        return self.fallback.try_render(payload)


def payload_lines(payload: ReportPdfPayload) -> List[str]:
    """Text lines of the basic layout, before truncation"""
    return [
        payload.title,
        f"Period: {payload.period_label}",
        f"Generated at: {payload.generated_at}",
        "",
        "KPI Summary",
        *[f"- {kpi.label}: {kpi.value}" for kpi in payload.kpis],
        "",
        "AI Digest",
        *wrap_text(payload.digest, WRAP_WIDTH),
    ]


def build_single_page_pdf(lines: Sequence[str]) -> bytes:
    """
    Minimal PDF 1.4 document showing `lines` left-aligned on one page

    Objects: 1 Catalog, 2 Pages, 3 Page, 4 content stream, 5 Helvetica.
    The xref table carries the byte offset of every object.
    """
    sanitized = [escape_pdf_text(to_ascii(line)) for line in lines]
    content_stream = "\n".join([
        "BT",
        "/F1 12 Tf",
        "14 TL",
        _TEXT_ORIGIN,
        *[f"({line}) Tj" if index == 0 else f"T* ({line}) Tj" for index, line in enumerate(sanitized)],
        "ET",
    ])

    objects = [
        "<< /Type /Catalog /Pages 2 0 R >>",
        "<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        f"<< /Type /Page /Parent 2 0 R /MediaBox {_PAGE_MEDIA_BOX} "
        f"/Resources << /Font << /F1 5 0 R >> >> /Contents 4 0 R >>",
        f"<< /Length {len(content_stream.encode('ascii'))} >>\nstream\n{content_stream}\nendstream",
        "<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n{body}\nendobj\n".encode("ascii")

    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode("ascii")
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode("ascii")

    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF"
    ).encode("ascii")
    return bytes(out)


def wrap_text(text: str, max_chars: int) -> List[str]:
    """Greedy word wrap; a single over-long word keeps its own line"""
    normalized = re.sub(r" +", " ", to_ascii(re.sub(r"\s+", " ", text or "")))
    if not normalized:
        return [EMPTY_DIGEST_LINE]

    lines = []
    current = ""
    for word in normalized.split(" "):
        candidate = f"{current} {word}" if current else word
        if len(candidate) <= max_chars:
            current = candidate
        else:
            if current:
                lines.append(current)
            current = word

    if current:
        lines.append(current)
    return lines


def to_ascii(value: str) -> str:
    """Strip diacritics and anything outside printable ASCII"""
    decomposed = unicodedata.normalize("NFKD", value)
    without_marks = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"[^\x20-\x7E]", "", without_marks).strip()


def escape_pdf_text(value: str) -> str:
    """Escape the characters that delimit PDF literal strings"""
    return value.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
