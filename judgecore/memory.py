"""Best-effort resident memory sampling for a running child process.

Values are point-in-time samples in KB, not a kernel-tracked peak. Callers
that want something closer to a peak sample repeatedly and keep the max.
When the program runs under a sandbox wrapper the wrapper is the direct
child, so ``estimate_tree_usage`` adds up the wrapper and every live
descendant.
"""

import logging
import os
import re
import subprocess
import sys
import time
from pathlib import Path

import psutil

_logger = logging.getLogger(__name__)

_RSS_ANON = re.compile(r"RssAnon:\s+(\d+)\s+kB")
_VM_RSS = re.compile(r"VmRSS:\s+(\d+)\s+kB")

ATTEMPTS = 5
RETRY_DELAY = 0.01  # s


def _page_size_kb() -> int:
    try:
        return max(os.sysconf("SC_PAGE_SIZE") // 1024, 1)
    except (AttributeError, ValueError, OSError):
        return 4


class MemoryProbe:
    def __init__(self, proc_root: Path = Path("/proc"), platform: str = None,
                 attempts: int = ATTEMPTS, retry_delay: float = RETRY_DELAY):
        self.proc_root = proc_root
        self.platform = platform or sys.platform
        self.attempts = attempts
        self.retry_delay = retry_delay
        self._page_kb = _page_size_kb()

    def estimate_memory_usage(self, pid: int) -> int:
        """Return the resident memory of ``pid`` in KB, or 0 if unknown."""
        if pid is None or pid <= 0:
            return 0
        try:
            if self.platform.startswith("linux"):
                return self._linux(pid)
            if self.platform == "darwin":
                return self._darwin(pid)
            return self._generic(pid)
        except Exception as e:
            _logger.debug("Memory probe failed for pid %s: %s", pid, e)
            return 0

    def estimate_tree_usage(self, pid: int) -> int:
        """Return the summed resident memory of ``pid`` and its descendants in KB."""
        if pid is None or pid <= 0:
            return 0
        try:
            descendants = psutil.Process(pid).children(recursive=True)
        except psutil.Error:
            descendants = []
        return self.estimate_memory_usage(pid) + sum(
            self.estimate_memory_usage(child.pid) for child in descendants
        )

    def _retry(self, read) -> int:
        for attempt in range(self.attempts):
            value = read()
            if value > 0:
                return value
            if attempt < self.attempts - 1:
                time.sleep(self.retry_delay)
        return 0

    def _linux(self, pid: int) -> int:
        base = self.proc_root / str(pid)
        status = base / "status"
        if status.exists():
            kb = self._retry(lambda: self._read_status(status))
            if kb > 0:
                return kb
        statm = base / "statm"
        if statm.exists():
            return self._retry(lambda: self._read_statm(statm))
        return 0

    @staticmethod
    def _read_status(path: Path) -> int:
        try:
            content = path.read_text()
        except OSError:
            return 0
        match = _RSS_ANON.search(content) or _VM_RSS.search(content)
        return int(match.group(1)) if match else 0

    def _read_statm(self, path: Path) -> int:
        try:
            fields = path.read_text().split()
        except OSError:
            return 0
        if len(fields) < 2:
            return 0
        return int(fields[1]) * self._page_kb

    def _darwin(self, pid: int) -> int:
        def read():
            proc = subprocess.run(
                ["ps", "-o", "rss=", "-p", str(pid)],
                capture_output=True,
                timeout=1,
            )
            out = proc.stdout.decode("utf-8", errors="replace").strip()
            return int(out) if out.isdigit() else 0

        return self._retry(read)

    def _generic(self, pid: int) -> int:
        def read():
            try:
                return psutil.Process(pid).memory_info().rss // 1024
            except psutil.Error:
                return 0

        return self._retry(read)
