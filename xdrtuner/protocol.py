"""Line protocol spoken by the tuner: parsing of incoming messages."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from xdrtuner.scan import parse_scan

TUNER_FREQ_MIN = 100
TUNER_FREQ_MAX = 200000

SIGNAL_MONO = 0
SIGNAL_STEREO = 1
SIGNAL_FORCED_MONO = 1 << 1

RDS_LEGACY_LENGTH = 14
RDS_NEW_LENGTH = 18

_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_HEX_RE = re.compile(r"\s*([+-]?)(?:0[xX](?=[0-9a-fA-F]))?([0-9a-fA-F]+)")


def _atoi(text: str) -> int:
    match = _INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _strtod(text: str) -> float:
    match = _FLOAT_RE.match(text)
    return float(match.group(1)) if match else 0.0


def _hex(text: str) -> int:
    """Parse a leading hexadecimal number as an unsigned 32-bit value."""
    match = _HEX_RE.match(text)
    if not match:
        return 0
    value = int(match.group(2), 16)
    if match.group(1) == "-":
        value = -value
    return value & 0xFFFFFFFF


class EventKind(Enum):
    """Kind of information carried by one tuner message."""

    READY = "ready"
    UNAUTHORIZED = "unauthorized"
    SHUTDOWN = "shutdown"
    FREQ = "freq"
    DAA = "daa"
    SIGNAL = "signal"
    CCI = "cci"
    ACI = "aci"
    PI = "pi"
    RDS_LEGACY = "rds_legacy"
    RDS = "rds"
    SCAN = "scan"
    PILOT = "pilot"
    VOLUME = "volume"
    AGC = "agc"
    DEEMPHASIS = "deemphasis"
    ANTENNA = "antenna"
    EXTERNAL = "external"
    GAIN = "gain"
    MODE = "mode"
    FILTER = "filter"
    BANDWIDTH = "bandwidth"
    SQUELCH = "squelch"
    ROTATOR = "rotator"
    SAMPLING_INTERVAL = "sampling_interval"
    ONLINE = "online"
    ONLINE_GUESTS = "online_guests"


_STOPPING = frozenset({EventKind.SHUTDOWN, EventKind.UNAUTHORIZED})


@dataclass(frozen=True)
class Event:
    """One piece of information decoded from a tuner message."""

    kind: EventKind
    value: Any = None

    @property
    def stops(self) -> bool:
        """True when the connection must be closed after this event."""
        return self.kind in _STOPPING


@dataclass(frozen=True)
class SignalReport:
    """Signal level with stereo indicator flags."""

    value: float
    flags: int = SIGNAL_MONO

    @property
    def stereo(self) -> bool:
        return bool(self.flags & SIGNAL_STEREO)

    @property
    def forced_mono(self) -> bool:
        return bool(self.flags & SIGNAL_FORCED_MONO)


@dataclass(frozen=True)
class RdsGroup:
    """An RDS group: four 16-bit blocks and the packed error byte."""

    blocks: tuple[int, int, int, int]
    errors: int

    @property
    def pi(self) -> int:
        return self.blocks[0]

    def block_error(self, index: int) -> int:
        """Return the two-bit error level of block *index* (0 is block A)."""
        if not 0 <= index < 4:
            raise IndexError("block index out of range")
        return (self.errors >> (6 - 2 * index)) & 0x03

    def to_message(self) -> str:
        """Return the group in the 18-character hexadecimal form."""
        return "{:04X}{:04X}{:04X}{:04X}{:02X}".format(*self.blocks, self.errors)


_SIMPLE = {
    "T": EventKind.FREQ,
    "V": EventKind.DAA,
    "N": EventKind.PILOT,
    "Y": EventKind.VOLUME,
    "A": EventKind.AGC,
    "D": EventKind.DEEMPHASIS,
    "Z": EventKind.ANTENNA,
    "G": EventKind.GAIN,
    "M": EventKind.MODE,
    "F": EventKind.FILTER,
    "W": EventKind.BANDWIDTH,
    "Q": EventKind.SQUELCH,
    "C": EventKind.ROTATOR,
    "I": EventKind.SAMPLING_INTERVAL,
}

_STEREO_FLAGS = {
    "s": SIGNAL_STEREO,
    "S": SIGNAL_STEREO | SIGNAL_FORCED_MONO,
    "M": SIGNAL_FORCED_MONO,
}


def _parse_signal(msg: str) -> list[Event]:
    flags = _STEREO_FLAGS.get(msg[0], SIGNAL_MONO)
    events = [Event(EventKind.SIGNAL, SignalReport(_strtod(msg[1:]), flags))]
    parts = msg.split(",", 2)
    if len(parts) > 1:
        events.append(Event(EventKind.CCI, _atoi(parts[1])))
        if len(parts) > 2:
            events.append(Event(EventKind.ACI, _atoi(parts[2])))
    return events


def _parse_pi(msg: str) -> Event:
    pi = _hex(msg)
    err = min(msg[4:].count("?"), 3)
    return Event(EventKind.PI, (pi | (err << 16)) & 0xFFFFFFFF)


def parse_line(line: str) -> list[Event]:
    """Decode one tuner line (without the newline) into events.

    Unknown or malformed messages yield an empty list.
    """
    if not line:
        return []
    code, msg = line[0], line[1:]

    if code == "O":
        return [Event(EventKind.READY, False)] if msg.startswith("K") else []
    if code == "X":
        return [Event(EventKind.SHUTDOWN)]
    if code in _SIMPLE:
        return [Event(_SIMPLE[code], _atoi(msg))]
    if code == "S":
        return _parse_signal(msg) if len(msg) >= 2 else []
    if code == "P":
        return [_parse_pi(msg)] if len(msg) >= 4 else []
    if code == "R":
        if len(msg) == RDS_LEGACY_LENGTH:
            return [Event(EventKind.RDS_LEGACY, msg)]
        if len(msg) == RDS_NEW_LENGTH:
            return [Event(EventKind.RDS, msg)]
        return []
    if code == "U":
        scan = parse_scan(msg)
        return [Event(EventKind.SCAN, scan)] if scan else []
    if code == "!":
        return [Event(EventKind.EXTERNAL)]
    if code == "o":
        events = [Event(EventKind.ONLINE, _atoi(msg))]
        _, comma, rest = msg.partition(",")
        if comma:
            events.append(Event(EventKind.ONLINE_GUESTS, _atoi(rest)))
        return events
    if code == "a":
        auth = _atoi(msg)
        if auth == 0:
            return [Event(EventKind.UNAUTHORIZED)]
        if auth == 1:
            return [Event(EventKind.READY, True)]
        return []
    return []


def legacy_rds_to_new(msg: str, pi: int | None, rds_active: bool) -> str:
    """Convert a 14-character legacy RDS message to the 18-character form.

    The legacy form carries blocks B, C, D and an error byte; block A is
    filled in from the last known *pi* (0 when unknown). When RDS is not
    currently active, block A is flagged with the largest error level.
    """
    if len(msg) != RDS_LEGACY_LENGTH:
        raise ValueError(f"legacy RDS message must be {RDS_LEGACY_LENGTH} characters")
    blocks = [_hex(msg[i:i + 4]) & 0xFFFF for i in range(0, 12, 4)]
    errors = _hex(msg[12:])

    corrected = 0
    if not rds_active:
        corrected |= 0x03 << 6
    corrected |= (errors & 0x03) << 4
    corrected |= errors & 0x0C
    corrected |= (errors & 0x30) >> 4

    block_a = pi if pi is not None and pi >= 0 else 0
    return "{:04X}{:04X}{:04X}{:04X}{:02X}".format(block_a, *blocks, corrected)


def parse_rds_group(msg: str) -> RdsGroup:
    """Parse an 18-character RDS message into its blocks and error byte."""
    if len(msg) != RDS_NEW_LENGTH:
        raise ValueError(f"RDS message must be {RDS_NEW_LENGTH} characters")
    blocks = tuple(_hex(msg[i:i + 4]) & 0xFFFF for i in range(0, 16, 4))
    return RdsGroup(blocks, _hex(msg[16:]) & 0xFF)  # type: ignore[arg-type]


def format_ct(year: int, month: int, day: int, hour: int, minute: int, offset: int) -> str:
    """Format RDS clock time with its local offset given in minutes."""
    sign = "+" if offset >= 0 else "-"
    hours, minutes = divmod(abs(offset), 60)
    return f"{year:04d}-{month:02d}-{day:02d} {hour:02d}:{minute:02d} {sign}{hours:02d}:{minutes:02d}"