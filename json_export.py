# =============================================================================
# json_export.py
# JSON export of a RunResult with base64 data-URL thumbnails.
# =============================================================================

import base64
import datetime
import json
from pathlib import Path
from typing import Optional

from constants import SOFTWARE_NAME, SOFTWARE_VERSION
from models import DetectionSettings, RunResult


def data_url(image: Optional[bytes], mime: str = "image/jpeg") -> Optional[str]:
    if not image:
        return None
    return f"data:{mime};base64,{base64.b64encode(image).decode('ascii')}"


def build_export(result: RunResult, settings: Optional[DetectionSettings] = None,
                 user: str = "") -> dict:
    return {
        "metadata": {
            "date":        datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "fileName":    result.file_name,
            "duration":    result.duration,
            "objectCount": result.object_count,
            "partial":     result.aborted,
            "user":        user,
            "software":    SOFTWARE_NAME,
            "version":     SOFTWARE_VERSION,
        },
        "settings": settings.to_dict() if settings else None,
        "objects": [
            {
                "className":  o.label,
                "confidence": o.confidence,
                "frameTime":  o.frame_time,
                "bbox":       list(o.bbox),
                "thumbnail":  data_url(o.image),
            }
            for o in result.objects
        ],
    }


def export_json(result: RunResult, out_json: str,
                settings: Optional[DetectionSettings] = None, user: str = "") -> Path:
    out_path = Path(out_json).expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(build_export(result, settings, user), f, indent=2)
    return out_path
