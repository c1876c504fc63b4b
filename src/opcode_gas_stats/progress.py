import shutil
import sys
import time
from typing import Optional, TextIO


def fmt_hms(seconds: float) -> str:
    s = int(max(0, seconds))
    h, rem = divmod(s, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h:d}h{m:02d}m{s:02d}s"
    if m:
        return f"{m:d}m{s:02d}s"
    return f"{s:d}s"


class ProgressBar:
    """Single-line block progress with rate and ETA, overwriting the same console line.

    Redraws at most every ``min_interval`` seconds, except for the final block.
    """

    def __init__(self, total: int, prefix: str = "scan", min_interval: float = 0.1, stream: Optional[TextIO] = None):
        self.total = total
        self.prefix = prefix
        self.min_interval = min_interval
        self.stream = stream or sys.stdout
        self.start_time = time.time()
        self._last_render = 0.0

    def render(self, current: int, label: str = "") -> None:
        now = time.time()
        if now - self._last_render < self.min_interval and current < self.total:
            return
        self._last_render = now

        total = self.total
        current = max(0, min(current, total))
        elapsed = max(1e-9, now - self.start_time)
        rate = current / elapsed
        remain = max(0.0, (total - current) / rate) if rate > 0 else 0.0

        width = shutil.get_terminal_size((100, 20)).columns
        pct = (current / total * 100.0) if total > 0 else 0.0
        bar_width = max(10, min(40, width - 70))
        filled = int(round(bar_width * (current / total))) if total > 0 else 0
        bar = "█" * filled + "·" * (bar_width - filled)

        line = (
            f"{self.prefix:>6} |[{bar}] {pct:6.2f}% "
            f"{current:>7d}/{total:<7d} | {rate:6.2f} blk/s | ETA {fmt_hms(remain)}"
        )
        if label:
            line += f" | {label}"
        if len(line) >= width:
            line = line[: width - 1]

        self.stream.write("\r" + line)
        self.stream.flush()

    def finish(self) -> None:
        self.stream.write("\n")
        self.stream.flush()
