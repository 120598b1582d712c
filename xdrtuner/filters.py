"""Tuner filter tables and bandwidth lookups."""

from __future__ import annotations

from enum import IntEnum


class Mode(IntEnum):
    """Demodulation mode reported by the tuner."""

    FM = 0
    AM = 1


# Filter identifiers of the legacy 'F' message, ordered from widest to narrowest.
# The last entry (-1) stands for the adaptive filter.
FILTERS_LEGACY: tuple[int, ...] = (
    15, 14, 13, 12, 11, 10, 9, 8, 7, 6, 5, 4, 3, 29, 2,
    28, 1, 26, 0, 24, 23, 22, 21, 20, 19, 18, 17, 16, 31, -1,
)

FILTERS_BW_FM_XDR: tuple[int, ...] = (
    309000, 298000, 281000, 263000, 246000, 229000, 211000, 194000,
    177000, 159000, 142000, 125000, 108000, 95000, 90000, 83000,
    73000, 63000, 55000, 48000, 42000, 36000, 32000, 27000,
    24000, 20000, 17000, 15000, 9000, 0,
)

FILTERS_BW_AM_XDR: tuple[int, ...] = (
    38600, 37300, 35100, 32900, 30800, 28600, 26400, 24300,
    22100, 19900, 17800, 15600, 13500, 11800, 11300, 10400,
    9100, 7900, 6900, 6000, 5200, 4600, 3900, 3400,
    2900, 2500, 2200, 1900, 1100, 0,
)

FILTERS_BW_FM_TEF: tuple[int, ...] = (
    311000, 287000, 254000, 236000, 217000, 200000, 184000, 168000,
    151000, 133000, 114000, 97000, 84000, 72000, 64000, 56000, 0,
)

FILTERS_BW_AM_TEF: tuple[int, ...] = (8000, 6000, 4000, 3000, 0)

assert len(FILTERS_LEGACY) == len(FILTERS_BW_FM_XDR) == len(FILTERS_BW_AM_XDR)


def filter_table(mode: int, tef668x: bool) -> tuple[int, ...]:
    """Return the bandwidth table (in Hz) for a mode and tuner family.

    The last entry of every table is 0, meaning adaptive bandwidth.
    An unknown mode yields an empty table.
    """
    if mode == Mode.FM:
        return FILTERS_BW_FM_TEF if tef668x else FILTERS_BW_FM_XDR
    if mode == Mode.AM:
        return FILTERS_BW_AM_TEF if tef668x else FILTERS_BW_AM_XDR
    return ()


def filter_from_index(index: int) -> int:
    """Return the legacy filter identifier at *index*, or -1 (adaptive)."""
    if 0 <= index < len(FILTERS_LEGACY):
        return FILTERS_LEGACY[index]
    return -1


def filter_bw(filter_id: int, mode: int) -> int:
    """Return the bandwidth of a legacy filter identifier, or 0 when unknown.

    The legacy 'F' message always refers to the XDR bandwidth tables.
    """
    try:
        position = FILTERS_LEGACY.index(filter_id)
    except ValueError:
        return 0
    if mode == Mode.FM:
        return FILTERS_BW_FM_XDR[position]
    if mode == Mode.AM:
        return FILTERS_BW_AM_XDR[position]
    return 0


def filter_bw_from_index(index: int, mode: int, tef668x: bool) -> int:
    """Return the bandwidth at *index* of the current table, or 0 if out of range."""
    table = filter_table(mode, tef668x)
    if 0 <= index < len(table):
        return table[index]
    return 0


def filter_index_from_bw(bw: int, mode: int, tef668x: bool) -> int:
    """Return the index of the filter closest to *bw*.

    A non-positive bandwidth selects the last (adaptive) entry. Ties resolve
    to the wider filter.
    """
    table = filter_table(mode, tef668x)
    index = len(table) - 1
    if bw > 0 and len(table) > 1:
        index = min(range(len(table) - 1), key=lambda i: abs(table[i] - bw))
    return index


def filter_count(mode: int, tef668x: bool) -> int:
    """Return the number of entries in the current bandwidth table."""
    return len(filter_table(mode, tef668x))