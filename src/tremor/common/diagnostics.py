from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

LEVEL_WARNING = "warning"
LEVEL_ERROR = "error"


@dataclass
class DiagnosticItem:
    ts: float
    level: str
    context: str
    message: str
    count: int = 1

    def summary_line(self) -> str:
        base = f"[{self.level}] {self.context}: {self.message}".strip()
        if self.count > 1:
            base += f" (x{self.count})"
        return base


class DiagnosticLog:
    """
    Small in-memory diagnostic buffer shared by the shake engine and its host glue.

    Goals:
    - never crash the frame loop because of reporting
    - keep a short feed of recent configuration/re-entrancy problems
    - de-duplicate repeated identical reports (common when a host re-triggers every frame)
    """

    def __init__(self, *, max_items: int = 30, persist_path: Path | None = None) -> None:
        self.enabled: bool = True
        self._max_items = max(1, int(max_items))
        self._items: list[DiagnosticItem] = []
        self._last_key: tuple[str, str, str] | None = None
        self._persist_path = Path(persist_path) if isinstance(persist_path, Path) else None

    def items(self) -> list[DiagnosticItem]:
        return list(self._items)

    def total_count(self) -> int:
        return sum(int(it.count) for it in self._items)

    def clear(self) -> None:
        self._items.clear()
        self._last_key = None

    def warning(self, *, context: str, message: str) -> None:
        self._report(level=LEVEL_WARNING, context=context, message=message)

    def error(self, *, context: str, message: str) -> None:
        self._report(level=LEVEL_ERROR, context=context, message=message)

    def _report(self, *, level: str, context: str, message: str) -> None:
        if not self.enabled:
            return
        context = str(context or "unknown")
        message = str(message or "").strip() or "Unknown problem"
        self._append(level=level, context=context, message=message)
        self._persist(level=level, context=context, message=message)
        log_level = logging.ERROR if level == LEVEL_ERROR else logging.WARNING
        logger.log(log_level, "%s: %s", context, message)

    def _append(self, *, level: str, context: str, message: str) -> None:
        ts = time.time()
        key = (level, context, message)
        if self._items and self._last_key == key:
            self._items[-1].ts = ts
            self._items[-1].count += 1
            return

        self._items.append(DiagnosticItem(ts=ts, level=level, context=context, message=message, count=1))
        self._last_key = key
        if len(self._items) > self._max_items:
            self._items = self._items[-self._max_items :]

    def _persist(self, *, level: str, context: str, message: str) -> None:
        p = self._persist_path
        if p is None:
            return
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            ts = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
            with p.open("a", encoding="utf-8") as fh:
                fh.write(f"[{ts}] {level.upper()} {context}: {message}\n")
        except OSError:
            logger.debug("Could not persist diagnostic to %s", p, exc_info=True)


__all__ = ["DiagnosticItem", "DiagnosticLog", "LEVEL_ERROR", "LEVEL_WARNING"]
