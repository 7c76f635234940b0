from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import MappingProxyType

PROJECT_ROOT = Path(__file__).resolve().parents[1]
OUTPUT_DIR = PROJECT_ROOT / "output"
LOG_DIR = PROJECT_ROOT / "logs"
DEFAULT_OUTPUT_PATH = OUTPUT_DIR / "structure.json"

LOG_FILE_PREFIX = "docstruct"
LOG_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

OOXML_NAMESPACES = MappingProxyType(
    {
        "w": "http://schemas.openxmlformats.org/wordprocessingml/2006/main",
        "a": "http://schemas.openxmlformats.org/drawingml/2006/main",
        "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
        "m": "http://schemas.openxmlformats.org/officeDocument/2006/math",
        "v": "urn:schemas-microsoft-com:vml",
        "wp": "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing",
        "mc": "http://schemas.openxmlformats.org/markup-compatibility/2006",
    }
)
W_NS = OOXML_NAMESPACES["w"]
A_NS = OOXML_NAMESPACES["a"]

BASED_ON_MAX_HOPS = 32
MAX_NUMBERING_LEVELS = 9
TOC_EXIT_MIN_ENTRIES = 5
PATTERN_MIN_OCCURRENCES = 2
PATTERN_MAX_EXAMPLES = 3

DEFAULT_MAJOR_FONT = "Calibri Light"
DEFAULT_MINOR_FONT = "Calibri"
DEFAULT_FONT_SIZE_HALF_POINTS = 22
DEFAULT_TAB_STOP_TWIPS = 720
TOC_LEVEL_INDENT_TWIPS = 220
TOC_MAX_LEVEL = 9
DEFAULT_PAGE_MARGINS_TWIPS = {
    "top": 1440,
    "bottom": 1440,
    "left": 1440,
    "right": 1440,
    "header": 720,
    "footer": 720,
    "gutter": 0,
}
DEFAULT_PAGE_SIZE_TWIPS = (12240, 15840)


def ensure_base_dirs() -> None:
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)


def build_log_path(ts: datetime | None = None) -> Path:
    if ts is None:
        ts = datetime.now()
    name = f"{LOG_FILE_PREFIX}_{ts.strftime(LOG_TIMESTAMP_FORMAT)}.log"
    return LOG_DIR / name


def cleanup_logs(retention_days: int = 5, now: datetime | None = None) -> int:
    if retention_days <= 0:
        return 0
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
    except OSError:
        return 0
    base_time = now or datetime.now()
    cutoff = base_time.timestamp() - retention_days * 86400
    removed = 0
    for path in LOG_DIR.glob(f"{LOG_FILE_PREFIX}_*.log"):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                removed += 1
        except OSError:
            continue
    return removed
