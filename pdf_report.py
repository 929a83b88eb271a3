# =============================================================================
# pdf_report.py
# Object detection PDF report for a RunResult, built with ReportLab:
# title banner, run summary, and one table row per unique object.
# =============================================================================

import datetime
import io
from collections import Counter

from models import RunResult

REPORT_TITLE = "Object Detection Report"
THUMB_INCHES = 1.4
TOP_LABELS   = 5


def format_time(seconds: float) -> str:
    """Seconds as m:ss."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def _palette():
    from reportlab.lib import colors
    return {
        "navy":   colors.HexColor("#0D2B4E"),
        "accent": colors.HexColor("#3563E9"),
        "pale":   colors.HexColor("#EEF3FA"),
        "rule":   colors.HexColor("#1D6A3A"),
        "stripe": colors.HexColor("#F4F4F4"),
        "grid":   colors.HexColor("#CCCCCC"),
        "muted":  colors.HexColor("#666666"),
        "banner": colors.HexColor("#AACCEE"),
        "white":  colors.white,
        "black":  colors.black,
    }


def _styles(pal):
    from reportlab.lib.styles import ParagraphStyle

    def style(name, size, color, bold=False, **kw):
        return ParagraphStyle(name, fontSize=size, textColor=color,
                              fontName="Helvetica-Bold" if bold else "Helvetica", **kw)

    return {
        "title":   style("title", 24, pal["white"], bold=True, alignment=1,
                         leading=28, spaceAfter=6),
        "banner":  style("banner", 12, pal["banner"], alignment=1, spaceAfter=4),
        "heading": style("heading", 13, pal["navy"], bold=True,
                         spaceBefore=12, spaceAfter=4),
        "key":     style("key", 9, pal["navy"], bold=True),
        "cell":    style("cell", 9, pal["black"]),
        "note":    style("note", 7, pal["muted"], alignment=1),
    }


def _grid(pal, header: bool, pad: int, line: float, stripes):
    from reportlab.platypus import TableStyle
    cmds = [
        ("GRID",           (0, 0), (-1, -1), line, pal["grid"]),
        ("TOPPADDING",     (0, 0), (-1, -1), pad),
        ("BOTTOMPADDING",  (0, 0), (-1, -1), pad),
        ("VALIGN",         (0, 0), (-1, -1), "MIDDLE"),
        ("ROWBACKGROUNDS", (0, 1 if header else 0), (-1, -1), stripes),
    ]
    if header:
        cmds += [
            ("BACKGROUND", (0, 0), (-1, 0), pal["navy"]),
            ("TEXTCOLOR",  (0, 0), (-1, 0), pal["white"]),
            ("FONTNAME",   (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE",   (0, 0), (-1, -1), 8),
        ]
    return TableStyle(cmds)


def _summary_rows(result: RunResult):
    counts = Counter(o.label for o in result.objects)
    kinds  = ", ".join(f"{k} ({n}x)" for k, n in counts.most_common(TOP_LABELS))
    rows = [
        ("File",             result.file_name or "N/A"),
        ("Duration",         f"{result.duration:.1f}s ({format_time(result.duration)})"),
        ("Objects detected", str(result.object_count)),
        ("Object types",     kinds or "None detected"),
    ]
    if result.aborted:
        rows.append(("Status", "Partial result (processing was stopped)"))
    return rows


def _thumbnail(data, width: float, fallback):
    from reportlab.lib.utils import ImageReader
    from reportlab.platypus import Image
    if not data:
        return fallback
    iw, ih = ImageReader(io.BytesIO(data)).getSize()
    scale  = min(width / iw, width / ih)
    return Image(io.BytesIO(data), width=iw * scale, height=ih * scale)


def generate_pdf_report(out_path: str, result: RunResult, user: str = "") -> str:
    """
    Build and save the object detection PDF report.
    Returns out_path on success.
    """
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.units import inch
    from reportlab.platypus import (SimpleDocTemplate, Paragraph, Spacer,
                                    Table, TableStyle, HRFlowable)

    pal    = _palette()
    st     = _styles(pal)
    margin = 0.6 * inch
    width  = A4[0] - 2 * margin
    thumb  = THUMB_INCHES * inch

    doc = SimpleDocTemplate(out_path, pagesize=A4,
                            leftMargin=margin, rightMargin=margin,
                            topMargin=0.8 * inch, bottomMargin=0.8 * inch,
                            title=REPORT_TITLE, author=user)
    story = []

    # -- Banner ---------------------------------------------------------------
    stamp = datetime.datetime.now().strftime("%B %d, %Y  %H:%M:%S")
    byline = f"Generated: {stamp}" + (f"  |  User: {user}" if user else "")
    banner = Table([[Paragraph(REPORT_TITLE, st["title"])],
                    [Paragraph(byline, st["banner"])]], colWidths=[width])
    banner.setStyle(TableStyle([
        ("BACKGROUND",    (0, 0), (-1, -1), pal["navy"]),
        ("TOPPADDING",    (0, 0), (-1, -1), 14),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 14),
    ]))
    story += [banner, Spacer(1, 0.2 * inch)]

    # -- Summary --------------------------------------------------------------
    story += [HRFlowable(width=width, thickness=2, color=pal["accent"], spaceAfter=6),
              Paragraph("Summary", st["heading"])]
    summary = Table([[Paragraph(k, st["key"]), Paragraph(v, st["cell"])]
                     for k, v in _summary_rows(result)],
                    colWidths=[1.8 * inch, width - 1.8 * inch])
    summary.setStyle(_grid(pal, header=False, pad=5, line=0.5,
                           stripes=[pal["pale"], pal["white"]]))
    story += [summary, Spacer(1, 0.12 * inch)]

    # -- Objects --------------------------------------------------------------
    story += [HRFlowable(width=width, thickness=2, color=pal["rule"], spaceAfter=6),
              Paragraph("Detected Objects", st["heading"])]
    if result.objects:
        rows = [["#", "Image", "Object", "Confidence", "Time", "Box (x, y, w, h)"]]
        for n, obj in enumerate(result.objects, start=1):
            rows.append([
                str(n),
                _thumbnail(obj.image, thumb, Paragraph("N/A", st["cell"])),
                Paragraph(obj.label, st["cell"]),
                f"{obj.confidence * 100:.1f}%",
                format_time(obj.frame_time),
                ", ".join(str(int(round(v))) for v in obj.bbox),
            ])
        widths = [0.35 * inch, thumb + 0.15 * inch, 1.5 * inch, 0.85 * inch,
                  0.6 * inch, width - thumb - 3.45 * inch]
    else:
        rows, widths = [["No objects were detected in this video."]], [width]
    objects = Table(rows, colWidths=widths, repeatRows=1)
    objects.setStyle(_grid(pal, header=bool(result.objects), pad=4, line=0.3,
                           stripes=[pal["white"], pal["stripe"]]))
    story += [objects, Spacer(1, 0.15 * inch)]

    # -- Footer ---------------------------------------------------------------
    story += [HRFlowable(width=width, thickness=1, color=pal["grid"], spaceAfter=4),
              Paragraph("All analysis performed locally. "
                        "The source video was not modified.", st["note"])]

    doc.build(story)
    return out_path
