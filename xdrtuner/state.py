"""Tuner state kept up to date from the messages the tuner sends."""

from __future__ import annotations

import math
import time

from xdrtuner.filters import Mode, filter_bw, filter_index_from_bw
from xdrtuner.protocol import (
    Event,
    EventKind,
    RdsGroup,
    SignalReport,
    legacy_rds_to_new,
    parse_rds_group,
)
from xdrtuner.scan import Scan

DEFAULT_ANT_COUNT = 4
DEFAULT_SAMPLING_INTERVAL = 66

# RDS stream: 1187.5 bps, one group of 104 bits carries one PI code.
_RDS_BITRATE = 1187.5
_RDS_GROUP_BITS = 104


class TunerState:
    """Everything known about the connected tuner."""

    def __init__(
        self,
        ant_count: int = DEFAULT_ANT_COUNT,
        tef668x: bool = False,
        ant_clear_rds: bool = False,
    ) -> None:
        if ant_count < 1:
            raise ValueError("ant_count must be at least 1")
        self.tef668x = tef668x
        self.ant_clear_rds = ant_clear_rds
        self.offsets: list[int] = [0] * ant_count

        self.mode: int = Mode.FM
        self.daa = 0
        self.volume = 0
        self.agc = 0
        self.deemphasis = 0
        self.antenna = 0
        self.rfgain = False
        self.ifgain = False
        self.bandwidth = 0
        self.squelch = 0
        self.rotator_waiting = False
        self.pilot = 0
        self.unauthorized = False
        self.external_events = 0
        self.last_scan: Scan | None = None

        self.freq = 0
        self.prevfreq = 0
        self.prevantenna = 0
        self.sampling_interval = 0
        self.signal = math.nan
        self.signal_max = math.nan
        self.signal_sum = 0.0
        self.signal_samples = 0
        self.stereo = False
        self.forced_mono = False
        self.cci = -1
        self.aci = -1
        self.rds_timeout = 0
        self.rds_reset_timer = 0
        self.rds_pi: int | None = None
        self.rds_pi_err_level: int | None = None
        self.last_rds: RdsGroup | None = None
        self.ready = False
        self.ready_tuned = False
        self.guest = False
        self.online = 0
        self.online_guests = 0
        self.send_settings = True
        self.rotator = 0
        self.clear_all()

    # Dispatch

    def handle(self, event: Event):
        """Apply one decoded tuner event.

        Returns the RDS group for RDS events, the (offset corrected) scan for
        scan events and None otherwise.
        """
        kind, value = event.kind, event.value
        if kind is EventKind.READY:
            self.on_ready(bool(value))
        elif kind is EventKind.UNAUTHORIZED:
            self.unauthorized = True
        elif kind is EventKind.FREQ:
            self.on_freq(value)
        elif kind is EventKind.DAA:
            self.daa = value
        elif kind is EventKind.SIGNAL:
            self.on_signal(value)
        elif kind is EventKind.CCI:
            self.cci = value
        elif kind is EventKind.ACI:
            self.aci = value
        elif kind is EventKind.PI:
            self.on_pi(value)
        elif kind is EventKind.RDS_LEGACY:
            return self._store_rds(legacy_rds_to_new(value, self.rds_pi, bool(self.rds_timeout)))
        elif kind is EventKind.RDS:
            return self._store_rds(value)
        elif kind is EventKind.SCAN:
            offset = self.get_offset()
            self.last_scan = value.shifted(offset) if offset else value
            return self.last_scan
        elif kind is EventKind.PILOT:
            self.pilot = value
        elif kind is EventKind.VOLUME:
            self.volume = value
        elif kind is EventKind.AGC:
            self.agc = value
        elif kind is EventKind.DEEMPHASIS:
            self.deemphasis = value
        elif kind is EventKind.ANTENNA:
            self.on_antenna(value)
        elif kind is EventKind.EXTERNAL:
            self.external_events += 1
        elif kind is EventKind.GAIN:
            self.on_gain(value)
        elif kind is EventKind.MODE:
            self.on_mode(value)
        elif kind is EventKind.FILTER:
            self.on_filter(value)
        elif kind is EventKind.BANDWIDTH:
            self.bandwidth = value
        elif kind is EventKind.SQUELCH:
            self.squelch = value
        elif kind is EventKind.ROTATOR:
            self.on_rotator(value)
        elif kind is EventKind.SAMPLING_INTERVAL:
            self.sampling_interval = value
        elif kind is EventKind.ONLINE:
            self.on_online(value)
        elif kind is EventKind.ONLINE_GUESTS:
            self.online_guests = value
        return None

    def _store_rds(self, msg: str) -> RdsGroup:
        self.last_rds = parse_rds_group(msg)
        return self.last_rds

    # Handlers

    def on_ready(self, guest: bool) -> None:
        """The tuner accepted the connection."""
        self.ready = True
        self.guest = guest

    def on_freq(self, freq: int) -> None:
        """The tuner has tuned to *freq* kHz."""
        antenna_offset_changed = (
            self.prevantenna != self.antenna
            and self._offset_of(self.prevantenna) != self._offset_of(self.antenna)
        )
        if freq != self.freq or antenna_offset_changed:
            self.prevfreq = self.freq
            self.prevantenna = self.antenna
            self.freq = freq

        self.clear_signal()
        self.clear_rds()
        self.signal = math.nan
        self.signal_max = math.nan
        self.signal_sum = 0.0
        self.signal_samples = 0
        self.ready_tuned = True

    def on_signal(self, report: SignalReport) -> None:
        """Record a signal level sample; ignored until a frequency is known."""
        if not self.ready_tuned:
            return
        if self.rds_timeout:
            self.rds_timeout -= 1
        self.signal = report.value
        if math.isnan(self.signal_max) or self.signal > self.signal_max:
            self.signal_max = self.signal
        self.signal_sum += self.signal
        self.signal_samples += 1
        self.stereo = report.stereo
        self.forced_mono = report.forced_mono

    def on_pi(self, value: int) -> None:
        """Record a PI code packed with its error level in bits 16-17."""
        pi = value & 0xFFFF
        err_level = (value & 0x30000) >> 16
        interval = self.sampling_interval or DEFAULT_SAMPLING_INTERVAL

        if (
            self.rds_pi_err_level is not None
            and err_level > self.rds_pi_err_level
            and self.rds_pi != pi
        ):
            return

        self.rds_timeout = math.ceil(1000 * _RDS_GROUP_BITS / _RDS_BITRATE / interval) + 1
        self.rds_reset_timer = time.time_ns() // 1000
        self.rds_pi = pi
        if self.rds_pi_err_level is None or err_level < self.rds_pi_err_level:
            self.rds_pi_err_level = err_level

    def on_antenna(self, antenna: int) -> None:
        """The tuner switched to another antenna input."""
        self.antenna = antenna
        if self.ant_clear_rds:
            self.clear_rds()
        self.clear_signal()

    def on_gain(self, gain: int) -> None:
        """Decode the RF/IF gain setting (tens digit RF, units digit IF)."""
        self.rfgain = gain in (10, 11)
        self.ifgain = gain in (1, 11)
        self.clear_signal()

    def on_mode(self, mode: int) -> None:
        """The tuner switched between FM and AM."""
        self.mode = mode
        self.clear_signal()
        self.clear_rds()
        self.bandwidth = 0

    def on_filter(self, filter_id: int) -> None:
        """Set the bandwidth from a legacy filter identifier."""
        self.bandwidth = filter_bw(filter_id, self.mode)

    def on_rotator(self, rotator: int) -> None:
        """Rotator state; a negative value means the rotator is waiting."""
        self.rotator = abs(rotator)
        self.rotator_waiting = rotator < 0

    def on_online(self, online: int) -> None:
        """Number of users connected; others present means keep their settings."""
        self.online = online
        if not self.ready and online > 1:
            self.send_settings = False

    # Reset helpers

    def clear_all(self) -> None:
        """Reset the state to that of a disconnected tuner."""
        self.freq = 0
        self.prevfreq = 0
        self.prevantenna = 0

        self.sampling_interval = 0
        self.signal = math.nan
        self.forced_mono = False
        self.clear_signal()

        self.cci = -1
        self.aci = -1

        self.clear_rds()

        self.ready = False
        self.ready_tuned = False
        self.guest = False
        self.online = 0
        self.online_guests = 0
        self.send_settings = True

        self.rotator = 0

    def clear_signal(self) -> None:
        """Forget the signal statistics."""
        self.signal_max = math.nan
        self.signal_sum = 0.0
        self.signal_samples = 0
        self.stereo = False

    def clear_rds(self) -> None:
        """Forget all RDS information."""
        self.rds_timeout = 0
        self.rds_reset_timer = 0
        self.rds_pi = None
        self.rds_pi_err_level = None
        self.last_rds = None

    # Frequency and offsets

    def _offset_of(self, antenna: int) -> int:
        if 0 <= antenna < len(self.offsets):
            return self.offsets[antenna]
        return 0

    def get_freq(self) -> int:
        """Return the tuned frequency corrected by the current antenna offset."""
        return self.freq - self.get_offset()

    def get_offset(self) -> int:
        """Return the frequency offset of the current antenna."""
        return self._offset_of(self.antenna)

    def set_offset(self, antenna: int, offset: int) -> None:
        """Set the frequency offset of *antenna*; unknown antennas are ignored."""
        if 0 <= antenna < len(self.offsets):
            self.offsets[antenna] = offset

    @property
    def signal_average(self) -> float:
        """Mean signal level since the last reset, NaN without samples."""
        if not self.signal_samples:
            return math.nan
        return self.signal_sum / self.signal_samples

    @property
    def filter_index(self) -> int:
        """Index of the current bandwidth in the active filter table."""
        return filter_index_from_bw(self.bandwidth, self.mode, self.tef668x)