# =============================================================================
# pptx_export.py
# PowerPoint export of a RunResult using python-pptx: a title slide, then
# one slide per object label with up to four crops in a 2x2 grid.
# =============================================================================

import datetime
import io
from collections import OrderedDict
from typing import Dict, List

from PIL import Image

from models import RunResult, UniqueObject
from pdf_report import format_time

OBJECTS_PER_SLIDE = 4
GRID_COLS         = 2

# Layout in inches on a 13.333 x 7.5 widescreen slide
SLIDE_W, SLIDE_H = 13.333, 7.5
CELL_W,  CELL_H  = 5.0, 2.5
CAPTION_H        = 0.45
GRID_LEFT        = (SLIDE_W - GRID_COLS * CELL_W - 0.5) / 2
GRID_TOP         = 1.2


def group_by_label(objects: List[UniqueObject]) -> Dict[str, List[UniqueObject]]:
    """Objects per label, labels in first-seen order."""
    groups: Dict[str, List[UniqueObject]] = OrderedDict()
    for obj in objects:
        groups.setdefault(obj.label, []).append(obj)
    return groups


def _fit(data: bytes, box_w: float, box_h: float):
    with Image.open(io.BytesIO(data)) as im:
        iw, ih = im.size
    scale = min(box_w / iw, box_h / ih)
    return iw * scale, ih * scale


def generate_pptx(out_path: str, result: RunResult, user: str = "") -> str:
    """
    Build and save the presentation.
    Returns out_path on success.
    """
    from pptx import Presentation
    from pptx.dml.color import RGBColor
    from pptx.enum.text import PP_ALIGN
    from pptx.util import Inches, Pt

    NAVY  = RGBColor(0x0D, 0x2B, 0x4E)
    MUTED = RGBColor(0x5F, 0x61, 0x65)

    prs = Presentation()
    prs.slide_width  = Inches(SLIDE_W)
    prs.slide_height = Inches(SLIDE_H)
    blank = prs.slide_layouts[6]

    def text(slide, value, x, y, w, h, size, bold=False, color=NAVY):
        frame = slide.shapes.add_textbox(Inches(x), Inches(y), Inches(w), Inches(h)).text_frame
        frame.word_wrap = True
        for i, line in enumerate(value.split("\n")):
            para = frame.paragraphs[0] if i == 0 else frame.add_paragraph()
            para.text = line
            para.alignment = PP_ALIGN.CENTER
            para.font.size = Pt(size)
            para.font.bold = bold
            para.font.color.rgb = color

    # -- Title slide ----------------------------------------------------------
    title = prs.slides.add_slide(blank)
    text(title, "Object Detection", 1, 2.3, SLIDE_W - 2, 1, 36, bold=True)
    byline = f"Date: {datetime.date.today().isoformat()}"
    if user:
        byline += f"  |  User: {user}"
    text(title, byline, 1, 3.5, SLIDE_W - 2, 0.5, 16, color=MUTED)
    text(title, f"{result.file_name or 'Video'}: found {result.object_count} objects",
         1, 4.1, SLIDE_W - 2, 0.5, 16, color=MUTED)

    # -- One slide per label, four crops per slide ----------------------------
    for label, objects in group_by_label(result.objects).items():
        for start in range(0, len(objects), OBJECTS_PER_SLIDE):
            slide = prs.slides.add_slide(blank)
            heading = f"Object: {label}" + (" (continued)" if start else "")
            text(slide, heading, 1, 0.4, SLIDE_W - 2, 0.6, 24, bold=True)

            for i, obj in enumerate(objects[start:start + OBJECTS_PER_SLIDE]):
                row, col = divmod(i, GRID_COLS)
                x = GRID_LEFT + col * (CELL_W + 0.5)
                y = GRID_TOP + row * (CELL_H + CAPTION_H + 0.15)
                if obj.image:
                    w, h = _fit(obj.image, CELL_W, CELL_H)
                    slide.shapes.add_picture(io.BytesIO(obj.image),
                                             Inches(x + (CELL_W - w) / 2),
                                             Inches(y + (CELL_H - h) / 2),
                                             width=Inches(w), height=Inches(h))
                else:
                    text(slide, "No image", x, y + CELL_H / 2 - 0.25, CELL_W, 0.5, 14,
                         color=MUTED)
                caption = (f"Confidence: {round(obj.confidence * 100)}%  |  "
                           f"Time: {format_time(obj.frame_time)}")
                text(slide, caption, x, y + CELL_H, CELL_W, CAPTION_H, 12, color=MUTED)

    prs.save(out_path)
    return out_path
