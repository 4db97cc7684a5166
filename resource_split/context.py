"""
Run context: progress output, warnings and the per-run warning latch.

One RunContext is created per report generation and passed to every stage
that can report something. Nothing here is module-global, so two runs in the
same process never share "already warned" state.
"""

import sys
from dataclasses import dataclass, field
from typing import Dict, Set


@dataclass
class WarningState:
    """Remembers which one-shot warnings were already emitted."""
    emitted: Set[str] = field(default_factory=set)

    def first_time(self, key: str) -> bool:
        if key in self.emitted:
            return False
        self.emitted.add(key)
        return True

    def reset(self) -> None:
        self.emitted.clear()


class RunContext:
    """Output channel shared by all stages of one run."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.warnings = WarningState()
        self.counters: Dict[str, int] = {}

    def log(self, msg: str) -> None:
        """Progress detail, shown only with --verbose."""
        if self.verbose:
            print(msg)

    def info(self, msg: str) -> None:
        print(msg)

    def warn(self, msg: str) -> None:
        print(f"Warning: {msg}", file=sys.stderr)

    def warn_once(self, key: str, msg: str) -> bool:
        """Emit msg the first time key is seen in this run. Returns True if emitted."""
        if not self.warnings.first_time(key):
            return False
        self.warn(msg)
        return True

    def count(self, name: str, n: int = 1) -> int:
        """Bump a named tally and return its running total."""
        self.counters[name] = self.counters.get(name, 0) + n
        return self.counters[name]
