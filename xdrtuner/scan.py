"""Spectral scan results reported by the tuner."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def _atoi(text: str) -> int:
    match = _INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _strtod(text: str) -> float:
    match = _FLOAT_RE.match(text)
    return float(match.group(1)) if match else 0.0


@dataclass(frozen=True)
class ScanNode:
    """Signal level measured at one frequency (kHz)."""

    freq: int
    signal: float


@dataclass
class Scan:
    """A spectral scan: measured points and the integer level range."""

    signals: list[ScanNode] = field(default_factory=list)
    low: int = 0
    high: int = 0

    def __len__(self) -> int:
        return len(self.signals)

    def __iter__(self):
        return iter(self.signals)

    def copy(self) -> Scan:
        """Return an independent copy of the scan."""
        return Scan(list(self.signals), self.low, self.high)

    def shifted(self, offset: int) -> Scan:
        """Return a copy with every frequency reduced by *offset* kHz."""
        nodes = [ScanNode(node.freq - offset, node.signal) for node in self.signals]
        return Scan(nodes, self.low, self.high)


def parse_scan(msg: str | None) -> Scan | None:
    """Parse a ``freq=level,freq=level,...`` scan message.

    At most as many points are taken as there are commas in the message.
    Returns None when nothing usable is found.
    """
    if not msg:
        return None
    limit = msg.count(",")
    if not limit:
        return None

    nodes: list[ScanNode] = []
    low: float = math.inf
    high: float = -math.inf
    for token in msg.split(","):
        if len(nodes) >= limit:
            break
        parts = token.split("=", 2)
        if len(parts) < 2:
            continue
        node = ScanNode(_atoi(parts[0]), _strtod(parts[1]))
        if node.signal > high:
            high = math.ceil(node.signal)
        if node.signal < low:
            low = math.floor(node.signal)
        nodes.append(node)

    if not nodes:
        return None
    return Scan(nodes, int(low), int(high))