"""
Report PDF Generator (rich tier)

Generates an A4 PDF for a weekly or monthly channel report: title block,
KPI grid, a YouTube vs web trend chart and the digest text.
Uses reportlab Platypus for layout and matplotlib for the trend chart.
"""
import io
from typing import Optional, Sequence
from xml.sax.saxutils import escape

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
import matplotlib.ticker as mticker

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER, TA_LEFT
from reportlab.platypus import (
    SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer,
    Image, HRFlowable,
)

from pulse.services.correlation import TimeSeriesPoint

# ── Pulse palette ──────────────────────────────────
PULSE_INK = colors.HexColor("#111827")
PULSE_MIST = colors.HexColor("#f5f7fb")
PULSE_RED = colors.HexColor("#e11d48")
PULSE_BLUE = colors.HexColor("#2563eb")
PULSE_SLATE = colors.HexColor("#475569")
WHITE = colors.white

PAGE_W, PAGE_H = A4  # 595 x 842 pts
MARGIN = 36
KPI_COLUMNS = 4


def _styles():
    """Build custom paragraph styles."""
    ss = getSampleStyleSheet()
    ss.add(ParagraphStyle(
        "CoverTitle", parent=ss["Title"],
        fontName="Helvetica-Bold", fontSize=22, leading=28,
        textColor=PULSE_INK, alignment=TA_LEFT, spaceAfter=6,
    ))
    ss.add(ParagraphStyle(
        "CoverSub", parent=ss["Normal"],
        fontName="Helvetica", fontSize=11, leading=14,
        textColor=colors.HexColor("#666666"), alignment=TA_LEFT,
        spaceAfter=12,
    ))
    ss.add(ParagraphStyle(
        "SectionHead", parent=ss["Heading2"],
        fontName="Helvetica-Bold", fontSize=13, leading=16,
        textColor=PULSE_SLATE, spaceAfter=6, spaceBefore=14,
    ))
    ss.add(ParagraphStyle(
        "Digest", parent=ss["Normal"],
        fontName="Helvetica", fontSize=10, leading=15,
        textColor=PULSE_INK,
    ))
    ss.add(ParagraphStyle(
        "KpiValue", parent=ss["Normal"],
        fontName="Helvetica-Bold", fontSize=15, leading=19,
        textColor=PULSE_BLUE, alignment=TA_CENTER,
    ))
    ss.add(ParagraphStyle(
        "KpiLabel", parent=ss["Normal"],
        fontName="Helvetica", fontSize=8, leading=10,
        textColor=colors.HexColor("#666666"), alignment=TA_CENTER,
    ))
    return ss


def _kpi_grid(kpis, ss) -> Table:
    """KPI cards laid out KPI_COLUMNS per row, label above value."""
    rows = []
    for start in range(0, len(kpis), KPI_COLUMNS):
        chunk = list(kpis[start:start + KPI_COLUMNS])
        padding = [""] * (KPI_COLUMNS - len(chunk))
        rows.append([Paragraph(escape(k.label), ss["KpiLabel"]) for k in chunk] + padding)
        rows.append([Paragraph(escape(k.value), ss["KpiValue"]) for k in chunk] + padding)

    grid = Table(rows, colWidths=[(PAGE_W - 2 * MARGIN) / KPI_COLUMNS] * KPI_COLUMNS)
    style_cmds = [
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("BACKGROUND", (0, 0), (-1, -1), PULSE_MIST),
        ("BOX", (0, 0), (-1, -1), 0.5, colors.HexColor("#dde3ee")),
        ("LINEAFTER", (0, 0), (-2, -1), 0.3, colors.HexColor("#dde3ee")),
    ]
    for label_row in range(0, len(rows), 2):
        style_cmds.append(("TOPPADDING", (0, label_row), (-1, label_row), 10))
        style_cmds.append(("BOTTOMPADDING", (0, label_row + 1), (-1, label_row + 1), 10))
    grid.setStyle(TableStyle(style_cmds))
    return grid


def _build_trend_chart(series: Sequence[TimeSeriesPoint]) -> Optional[io.BytesIO]:
    """Render YouTube views vs web sessions on twin axes, return PNG bytes."""
    if len(series) < 2:
        return None

    days = [p.date.strftime("%d %b") for p in series]
    views = [p.youtube_views for p in series]
    sessions = [p.web_sessions for p in series]

    fig = Figure(figsize=(7, 2.6))
    FigureCanvasAgg(fig)
    ax1 = fig.subplots()
    fig.patch.set_facecolor("#ffffff")

    color1 = "#e11d48"
    ax1.set_ylabel("YouTube views", color=color1, fontsize=8)
    line1 = ax1.plot(days, views, color=color1, marker="o", markersize=3, linewidth=2)
    ax1.tick_params(axis="y", labelcolor=color1, labelsize=7)
    ax1.tick_params(axis="x", labelsize=7, rotation=30)
    ax1.set_ylim(bottom=0)

    ax2 = ax1.twinx()
    color2 = "#2563eb"
    ax2.set_ylabel("Web sessions", color=color2, fontsize=8)
    line2 = ax2.plot(days, sessions, color=color2, marker="s", markersize=3, linewidth=2)
    ax2.tick_params(axis="y", labelcolor=color2, labelsize=7)
    ax2.yaxis.set_major_locator(mticker.MaxNLocator(integer=True))
    ax2.set_ylim(bottom=0)

    # Keep long monthly series readable
    if len(days) > 14:
        step = max(1, len(days) // 10)
        ax1.set_xticks(range(0, len(days), step))
        ax1.set_xticklabels(days[::step])

    ax1.legend(line1 + line2, ["YouTube views", "Web sessions"], loc="upper left", fontsize=7, framealpha=0.8)
    ax1.grid(axis="y", alpha=0.2)
    fig.tight_layout()

    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    buf.seek(0)
    return buf


def _header_footer(canvas, doc, title: str):
    """Draw header bar and footer on every page."""
    canvas.saveState()
    canvas.setFillColor(PULSE_INK)
    canvas.rect(0, PAGE_H - 24, PAGE_W, 24, fill=1, stroke=0)
    canvas.setStrokeColor(PULSE_RED)
    canvas.setLineWidth(1.5)
    canvas.line(0, PAGE_H - 24, PAGE_W, PAGE_H - 24)
    canvas.setFillColor(WHITE)
    canvas.setFont("Helvetica-Bold", 9)
    canvas.drawString(MARGIN, PAGE_H - 16, "PULSE ANALYTICS")
    canvas.setFont("Helvetica", 8)
    canvas.drawRightString(PAGE_W - MARGIN, PAGE_H - 16, title)
    canvas.setFillColor(colors.HexColor("#999999"))
    canvas.setFont("Helvetica-Oblique", 7)
    canvas.drawCentredString(PAGE_W / 2, 18, f"Generated by Pulse Analytics · Page {doc.page}")
    canvas.restoreState()


def generate_report_pdf(payload) -> bytes:
    """
    Generate the full report PDF.

    Args:
        payload: ReportPdfPayload with title, period, KPIs, digest and
            an optional daily series for the trend chart.

    Returns:
        The PDF document bytes.
    """
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        topMargin=MARGIN + 16,  # below header bar
        bottomMargin=MARGIN,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        title=payload.title,
    )

    ss = _styles()
    story = []

    story.append(Paragraph(escape(payload.title), ss["CoverTitle"]))
    story.append(Paragraph(
        f"Period: {escape(payload.period_label)} · Generated {escape(payload.generated_at)}",
        ss["CoverSub"],
    ))
    story.append(HRFlowable(
        width="100%", thickness=1.5, color=PULSE_RED,
        spaceAfter=14, spaceBefore=4,
    ))

    if payload.kpis:
        story.append(Paragraph("KPI Summary", ss["SectionHead"]))
        story.append(_kpi_grid(payload.kpis, ss))
        story.append(Spacer(1, 10))

    chart_buf = _build_trend_chart(payload.series)
    if chart_buf:
        story.append(Paragraph("YouTube vs Web Traffic", ss["SectionHead"]))
        story.append(Image(chart_buf, width=PAGE_W - 2 * MARGIN, height=(PAGE_W - 2 * MARGIN) * 0.37))
        story.append(Spacer(1, 8))

    story.append(Paragraph("AI Digest", ss["SectionHead"]))
    digest = payload.digest.strip() or "No digest available for this period."
    story.append(Paragraph(escape(digest), ss["Digest"]))

    def on_page(canvas, doc):
        _header_footer(canvas, doc, payload.title)

    doc.build(story, onFirstPage=on_page, onLaterPages=on_page)
    return buf.getvalue()
