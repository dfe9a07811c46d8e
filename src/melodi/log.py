#!/usr/bin/env python3
"""Console progress reporting for resource imports.

Core components only call ``task``, ``progress`` and ``error`` on the logger
they receive, so any object exposing those methods can replace ConsoleLog
(the host platform passes its own).
"""


# === Functional Core (Pure Functions - No I/O) ===

def calculate_progress(current, total):
    """Calculate progress percentage.

    Args:
        current: Units processed so far (bytes or lines)
        total: Expected total, or None if unknown

    Returns:
        Progress percentage as integer (0-100), 0 when total is unknown
    """
    if not total or total <= 0:
        return 0
    return min(100, int(100 * current / total))


def should_report_progress(now, last_reported, interval):
    """Determine if a progress update should be emitted.

    Args:
        now: Current clock reading in seconds
        last_reported: Clock reading of the previous report
        interval: Minimum number of seconds between two reports

    Returns:
        True once strictly more than `interval` seconds have elapsed
    """
    return now - last_reported > interval


def format_progress_line(name, current, total=None):
    """Format a progress line like 'download DS_X - 512/1024 (50%)'."""
    if total:
        return f"{name} - {current}/{total} ({calculate_progress(current, total)}%)"
    return f"{name} - {current}"


# === I/O Layer ===

class ConsoleLog:
    """Logger printing task progress to stdout."""

    def __init__(self, prefix=''):
        self.prefix = prefix
        self.tasks = {}

    def _print(self, message):
        print(f"{self.prefix}{message}")

    def step(self, name):
        self._print(f"== {name}")

    def task(self, name, label, total=None):
        self.tasks[name] = total
        suffix = f" ({total})" if total else ''
        self._print(f"{name} - {label}{suffix}")

    def progress(self, name, current, total=None):
        if total is None:
            total = self.tasks.get(name)
        self._print(format_progress_line(name, current, total))

    def info(self, message):
        self._print(message)

    def error(self, message, detail=None):
        if detail:
            message = f"{message}: {detail}"
        self._print(f"Error: {message}")
