"""
Tests for PDF rendering: the hand-built fallback writer, text sanitising,
and tier selection.
"""
import asyncio
import re
from datetime import date, timedelta

import matplotlib.pyplot as plt

from pulse.services import pdf_service
from pulse.services.correlation import TimeSeriesPoint
from pulse.services.pdf_service import (
    BasicPdfRenderer,
    Kpi,
    PdfRenderer,
    PdfService,
    ReportLabRenderer,
    ReportPdfPayload,
)


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


def _payload(digest="YouTube is up and the web follows."):
    return ReportPdfPayload(
        title="Pulse Weekly Report",
        period_label="2026-03-02 to 2026-03-08",
        generated_at="2026-03-09 06:00 UTC",
        kpis=[Kpi("YouTube views", "28,400"), Kpi("Pulse Score", "612 (+4.0%)")],
        digest=digest,
    )


def _chart_payload(scale=1):
    payload = _payload()
    payload.series = [
        TimeSeriesPoint(date(2026, 3, 2) + timedelta(days=i), 100 * scale * (i + 1), 40 * (i + 1))
        for i in range(7)
    ]
    return payload


def _parse_xref(content: bytes):
    """Minimal reader: follow startxref to the table and return object offsets"""
    startxref = int(re.search(rb"startxref\n(\d+)\n%%EOF$", content).group(1))
    assert content[startxref:startxref + 4] == b"xref"

    lines = content[startxref:].split(b"\n")
    first, count = (int(x) for x in lines[1].split())
    entries = lines[2:2 + count]
    assert first == 0
    assert entries[0] == b"0000000000 65535 f "

    offsets = {}
    for number, entry in enumerate(entries[1:], start=1):
        offset, generation, kind = entry.split()
        assert kind == b"n"
        offsets[number] = int(offset)
    trailer = b"\n".join(lines[2 + count:])
    return offsets, trailer


class FailingRenderer(PdfRenderer):
    name = "failing"

    def try_render(self, payload):
        raise RuntimeError("renderer crashed")


class DecliningRenderer(PdfRenderer):
    name = "declining"

    def try_render(self, payload):
        return None


class TestSinglePagePdf:

    def test_header_and_trailer(self):
        content = pdf_service.build_single_page_pdf(["Hello", "World"])
        assert content.startswith(b"%PDF-1.4")
        assert content.endswith(b"%%EOF")
        assert b"trailer" in content

    def test_xref_offsets_point_at_objects(self):
        content = pdf_service.build_single_page_pdf(["Title", "Line (with) parens"])
        offsets, trailer = _parse_xref(content)
        assert len(offsets) == 5
        for number, offset in offsets.items():
            assert content[offset:].startswith(f"{number} 0 obj".encode())
        assert b"/Size 6" in trailer
        assert b"/Root 1 0 R" in trailer

    def test_stream_length_matches(self):
        content = pdf_service.build_single_page_pdf(["abc", "def"])
        match = re.search(rb"/Length (\d+) >>\nstream\n(.*?)\nendstream", content, re.S)
        assert int(match.group(1)) == len(match.group(2))

    def test_special_characters_escaped(self):
        content = pdf_service.build_single_page_pdf(["a (b) c\\d"])
        assert b"(a \\(b\\) c\\\\d) Tj" in content

    def test_non_ascii_stripped(self):
        content = pdf_service.build_single_page_pdf(["Résumé – café 🚀"])
        assert b"(Resume  cafe) Tj" in content
        content.decode("ascii")

    def test_each_line_shown(self):
        content = pdf_service.build_single_page_pdf(["one", "two", "three"])
        assert content.count(b" Tj") == 3
        assert content.count(b"T* (") == 2


class TestWrapText:

    def test_wraps_at_width(self):
        lines = pdf_service.wrap_text("word " * 60, 95)
        assert all(len(line) <= 95 for line in lines)
        assert " ".join(lines) == ("word " * 60).strip()

    def test_long_word_keeps_own_line(self):
        lines = pdf_service.wrap_text("short " + "x" * 120 + " tail", 95)
        assert lines == ["short", "x" * 120, "tail"]

    def test_collapses_whitespace(self):
        assert pdf_service.wrap_text("a\n\nb\t c", 95) == ["a b c"]

    def test_empty_digest(self):
        assert pdf_service.wrap_text("   ", 95) == [pdf_service.EMPTY_DIGEST_LINE]


class TestBasicRenderer:

    def test_layout_lines(self):
        lines = pdf_service.payload_lines(_payload())
        assert lines[:3] == [
            "Pulse Weekly Report",
            "Period: 2026-03-02 to 2026-03-08",
            "Generated at: 2026-03-09 06:00 UTC",
        ]
        assert "- YouTube views: 28,400" in lines
        assert lines[lines.index("AI Digest") + 1] == "YouTube is up and the web follows."

    def test_truncated_to_max_lines(self):
        content = BasicPdfRenderer().try_render(_payload(digest="lorem ipsum " * 1000))
        assert content.count(b" Tj") == pdf_service.MAX_PDF_LINES


class TestPdfService:

    def test_basic_only(self):
        content = _run(PdfService(advanced=None).render(_payload()))
        assert content.startswith(b"%PDF-1.4")

    def test_failing_renderer_falls_back(self):
        content = _run(PdfService(advanced=FailingRenderer()).render(_payload()))
        assert content.startswith(b"%PDF-1.4")
        _parse_xref(content)

    def test_declining_renderer_falls_back(self):
        content = _run(PdfService(advanced=DecliningRenderer()).render(_payload()))
        assert content.startswith(b"%PDF-1.4")

    def test_reportlab_renderer(self):
        content = _run(PdfService(advanced=ReportLabRenderer()).render(_payload()))
        assert content.startswith(b"%PDF-")
        assert not content.startswith(b"%PDF-1.4\n1 0 obj")

    def test_reportlab_renderer_with_chart(self):
        content = ReportLabRenderer().try_render(_chart_payload())
        assert content.startswith(b"%PDF-")

    def test_concurrent_chart_renders(self):
        async def render_many():
            service = PdfService(advanced=ReportLabRenderer())
            return await asyncio.gather(*(service.render(_chart_payload(scale)) for scale in range(1, 7)))

        results = _run(render_many())
        assert len(results) == 6
        assert all(not content.startswith(b"%PDF-1.4\n1 0 obj") for content in results)
        # charts never go through pyplot's global figure registry
        assert plt.get_fignums() == []
