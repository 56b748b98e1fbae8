import logging
from collections import deque
from datetime import datetime
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter()


class InMemoryLogHandler(logging.Handler):
    """Captures log records into a bounded deque for retrieval via API."""

    def __init__(self, max_lines: int = 2000):
        super().__init__()
        self.records: deque = deque(maxlen=max_lines)

    def emit(self, record):
        try:
            self.records.append({
                "timestamp": datetime.fromtimestamp(record.created).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            })
        except Exception:
            self.handleError(record)


# Singleton handler, attached to the root logger in main.py lifespan
log_handler = InMemoryLogHandler()
log_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s"))


def install_log_handler():
    """Call once at startup to attach the in-memory handler to the root logger."""
    root = logging.getLogger()
    if log_handler not in root.handlers:
        root.addHandler(log_handler)


@router.get("/logs")
async def get_logs(
    level: Optional[str] = None,
    logger_name: Optional[str] = None,
    limit: int = 500,
    offset: int = 0,
):
    """Return recent log entries, newest first, with optional filtering."""
    entries = list(log_handler.records)

    if level:
        level_upper = level.upper()
        entries = [e for e in entries if e["level"] == level_upper]

    if logger_name:
        entries = [e for e in entries if logger_name in e["logger"]]

    total = len(entries)
    entries = list(reversed(entries))
    entries = entries[offset:offset + limit]

    return {"items": entries, "total": total}


@router.get("/logs/export")
async def export_logs():
    lines = [
        f"{entry['timestamp']} {entry['level']:<8} {entry['logger']}: {entry['message']}"
        for entry in log_handler.records
    ]
    return PlainTextResponse(
        content="\n".join(lines),
        media_type="text/plain",
        headers={"Content-Disposition": f"attachment; filename=scope-logs-{datetime.now().strftime('%Y%m%d-%H%M%S')}.txt"},
    )
