import math

import pytest

from xdrtuner.filters import FILTERS_BW_FM_TEF, Mode, filter_bw
from xdrtuner.protocol import Event, EventKind, SignalReport, legacy_rds_to_new, parse_line
from xdrtuner.state import TunerState


def feed(state, *lines):
    result = None
    for line in lines:
        for event in parse_line(line):
            result = state.handle(event)
    return result


def test_initial_state_is_disconnected():
    state = TunerState()
    assert state.freq == 0
    assert state.cci == -1 and state.aci == -1
    assert state.rds_pi is None
    assert state.send_settings is True
    assert state.ready is False
    assert math.isnan(state.signal)
    assert state.offsets == [0, 0, 0, 0]


def test_invalid_ant_count():
    with pytest.raises(ValueError):
        TunerState(ant_count=0)


def test_ready_and_guest():
    state = TunerState()
    feed(state, "OK")
    assert state.ready is True
    assert state.guest is False
    other = TunerState()
    feed(other, "a1")
    assert other.ready is True
    assert other.guest is True


def test_unauthorized():
    state = TunerState()
    feed(state, "a0")
    assert state.unauthorized is True
    assert state.ready is False


def test_freq_tracks_previous():
    state = TunerState()
    feed(state, "T87500")
    assert state.freq == 87500
    assert state.prevfreq == 0
    assert state.ready_tuned is True
    feed(state, "T90000")
    assert state.freq == 90000
    assert state.prevfreq == 87500
    feed(state, "T90000")
    assert state.prevfreq == 87500


def test_get_freq_uses_antenna_offset():
    state = TunerState()
    state.set_offset(0, 100)
    feed(state, "T87600")
    assert state.get_offset() == 100
    assert state.get_freq() == 87500


def test_set_offset_out_of_range_is_ignored():
    state = TunerState(ant_count=2)
    state.set_offset(5, 10)
    state.set_offset(-1, 10)
    assert state.offsets == [0, 0]


def test_signal_ignored_before_tuning():
    state = TunerState()
    feed(state, "Ss45.5")
    assert state.signal_samples == 0
    assert math.isnan(state.signal)


def test_signal_statistics():
    state = TunerState()
    feed(state, "T87500", "Ss45.5", "Sm30.5")
    assert state.signal == 30.5
    assert state.signal_max == 45.5
    assert state.signal_samples == 2
    assert state.signal_sum == 76.0
    assert state.signal_average == pytest.approx(38.0)
    assert state.stereo is False


def test_signal_stereo_flags():
    state = TunerState()
    feed(state, "T87500", "Ss45.5")
    assert state.stereo is True and state.forced_mono is False
    feed(state, "SM30.0")
    assert state.stereo is False and state.forced_mono is True


def test_cci_aci():
    state = TunerState()
    feed(state, "T87500", "Sm40,12,7")
    assert state.cci == 12
    assert state.aci == 7


def test_pi_sets_timeout_and_level():
    state = TunerState()
    feed(state, "T87500", "P1234")
    assert state.rds_pi == 0x1234
    assert state.rds_pi_err_level == 0
    assert state.rds_timeout == 3
    assert state.rds_reset_timer > 0


def test_pi_with_more_errors_and_different_code_is_ignored():
    state = TunerState()
    feed(state, "P1234", "P5678??")
    assert state.rds_pi == 0x1234
    assert state.rds_pi_err_level == 0


def test_pi_error_level_improves():
    state = TunerState()
    feed(state, "P1234???")
    assert state.rds_pi_err_level == 3
    feed(state, "P1234")
    assert state.rds_pi_err_level == 0


def test_signal_decrements_rds_timeout():
    state = TunerState()
    feed(state, "T87500", "P1234")
    before = state.rds_timeout
    feed(state, "Sm40")
    assert state.rds_timeout == before - 1


def test_longer_sampling_interval_shortens_timeout():
    default = TunerState()
    feed(default, "P1234")
    slow = TunerState()
    feed(slow, "I1000", "P1234")
    assert slow.sampling_interval == 1000
    assert 0 < slow.rds_timeout < default.rds_timeout


def test_legacy_rds_uses_known_pi():
    state = TunerState()
    feed(state, "T87500", "P1234")
    legacy = "AAAABBBBCCCC00"
    group = feed(state, "R" + legacy)
    assert group.pi == 0x1234
    assert group.to_message() == legacy_rds_to_new(legacy, 0x1234, True)
    assert state.last_rds == group


def test_legacy_rds_without_rds_marks_block_a():
    state = TunerState()
    group = feed(state, "RAAAABBBBCCCC00")
    assert group.pi == 0
    assert group.block_error(0) == 3


def test_new_rds_group():
    state = TunerState()
    group = feed(state, "R12340000111122220F")
    assert group.blocks == (0x1234, 0x0000, 0x1111, 0x2222)
    assert group.errors == 0x0F


def test_scan_shifted_by_offset():
    state = TunerState()
    state.set_offset(0, 100)
    scan = feed(state, "U87600=10.0,87700=20.0,")
    assert [node.freq for node in scan] == [87500, 87600]
    assert state.last_scan is scan


@pytest.mark.parametrize("clear", [True, False])
def test_antenna_clear_rds_option(clear):
    state = TunerState(ant_clear_rds=clear)
    feed(state, "T87500", "P1234", "Z1")
    assert state.antenna == 1
    assert (state.rds_pi is None) is clear


@pytest.mark.parametrize(
    "gain, rf, if_",
    [(0, False, False), (1, False, True), (10, True, False), (11, True, True)],
)
def test_gain(gain, rf, if_):
    state = TunerState()
    state.on_gain(gain)
    assert state.rfgain is rf
    assert state.ifgain is if_


def test_mode_resets_bandwidth_and_rds():
    state = TunerState()
    feed(state, "W56000", "P1234", "M1")
    assert state.mode == Mode.AM
    assert state.bandwidth == 0
    assert state.rds_pi is None


def test_filter_sets_bandwidth():
    state = TunerState()
    feed(state, "F15")
    assert state.bandwidth == filter_bw(15, Mode.FM)
    assert state.bandwidth == 309000


def test_filter_index_tef():
    state = TunerState(tef668x=True)
    feed(state, "W56000")
    assert state.bandwidth == 56000
    assert state.filter_index == FILTERS_BW_FM_TEF.index(56000)


def test_rotator_waiting():
    state = TunerState()
    state.on_rotator(-2)
    assert state.rotator == 2
    assert state.rotator_waiting is True
    state.on_rotator(1)
    assert state.rotator == 1
    assert state.rotator_waiting is False


def test_online_before_ready_disables_settings():
    state = TunerState()
    feed(state, "o3,1")
    assert state.online == 3
    assert state.online_guests == 1
    assert state.send_settings is False


def test_online_after_ready_keeps_settings():
    state = TunerState()
    feed(state, "OK", "o2")
    assert state.send_settings is True


@pytest.mark.parametrize(
    "line, attr, value",
    [
        ("N5", "pilot", 5),
        ("Y80", "volume", 80),
        ("A2", "agc", 2),
        ("D1", "deemphasis", 1),
        ("Q20", "squelch", 20),
        ("V33", "daa", 33),
    ],
)
def test_simple_values(line, attr, value):
    state = TunerState()
    feed(state, line)
    assert getattr(state, attr) == value


def test_external_event_counted():
    state = TunerState()
    feed(state, "!", "!")
    assert state.external_events == 2


def test_handle_direct_signal_event():
    state = TunerState()
    state.on_freq(100000)
    assert state.handle(Event(EventKind.SIGNAL, SignalReport(12.0))) is None
    assert state.signal == 12.0


def test_clear_all_resets():
    state = TunerState()
    feed(state, "OK", "T87500", "Sm40,1,2", "P1234", "C3", "o2,1")
    state.clear_all()
    assert state.freq == 0
    assert state.ready is False and state.ready_tuned is False
    assert state.cci == -1 and state.aci == -1
    assert state.rds_pi is None
    assert state.rotator == 0
    assert state.online == 0 and state.online_guests == 0
    assert state.signal_samples == 0
    assert state.send_settings is True