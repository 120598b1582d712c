# xdrtuner

Building blocks for talking to an XDR-F1HD tuner with the XDR-I2C
modification, or to a TEF668X-based tuner, over a serial line or a
network tuner server.

## Modules

- **`xdrtuner.protocol`** – `parse_line(line)` decodes one tuner line
  (without its newline) into a list of `Event` objects, each with an
  `EventKind` and a value. Signal lines give a `SignalReport` (level and
  stereo / forced-mono flags) plus optional CCI and ACI events. An event
  whose `stops` property is true (shutdown or failed authorization) ends
  the session. `legacy_rds_to_new` turns a 14-character legacy RDS
  message into the 18-character form, `parse_rds_group` splits that form
  into an `RdsGroup` (four blocks, error byte, `block_error(index)`), and
  `format_ct` formats an RDS clock time with its offset in minutes.
- **`xdrtuner.state`** – `TunerState` applies events through
  `handle(event)`: frequency and previous frequency, signal level with
  maximum and average (`signal_average`), stereo flags, CCI/ACI, PI code
  with its error level and RDS timeout, antenna offsets (`set_offset`,
  `get_offset`, `get_freq`), gain, mode, filter and bandwidth
  (`filter_index`), squelch, rotator and online users. For RDS events it
  returns the `RdsGroup`, for scan events the offset-corrected `Scan`.
- **`xdrtuner.filters`** – filter and bandwidth tables for FM and AM in
  XDR and TEF668X modes: `filter_table`, `filter_count`,
  `filter_from_index`, `filter_bw`, `filter_bw_from_index`,
  `filter_index_from_bw`, and the `Mode` enum.
- **`xdrtuner.scan`** – `parse_scan` turns a `freq=level,freq=level,...`
  message into a `Scan` of `ScanNode` objects with integer `low` / `high`
  level bounds; `Scan.copy()` and `Scan.shifted(offset)` return new scans.
- **`xdrtuner.audio`** – display helpers for the volume and squelch
  controls: `volume_percent`, `volume_tooltip`, `volume_text`,
  `volume_toggle`, `squelch_text`, `squelch_markup`, `squelch_tooltip`
  and `squelch_icon` (returning a `SquelchIcon`).
- **`xdrtuner.connection`** – `open_serial(port_name)` opens a port at
  115200 baud 8N1; `open_socket(hostname, port, password, timeout)`
  connects and answers the server's salt with `auth_response` (SHA-1 of
  salt and password). Failures raise subclasses of `ConnectionFailed`.
  `TunerLink` reads lines on a background thread, passes each to a
  callback, and sends commands with `write`; `cancel` stops it.
  `restart_serial` pulses DTR and RTS.
- **`xdrtuner.stationlist`** – SRCP (StationList) over UDP.
  `StationListBuffer` collects parameters (`freq`, `rcvlevel`, `pi`,
  `pty`, `ecc`, `ps`, `rt`, `bw`, `af`) and `take_message` builds the
  outgoing message. `StationListServer` binds the command port, answers
  `freq=?` and `bandwidth=?`, forwards frequency and bandwidth requests
  to callbacks, and sends pending data every 0.2 s to the last sender on
  `port - 1`. It can be used as a context manager.

## Example

```python
from xdrtuner.connection import TunerLink, open_socket
from xdrtuner.protocol import parse_line
from xdrtuner.state import TunerState

state = TunerState(ant_count=4, tef668x=False, ant_clear_rds=True)

def on_line(line):
    for event in parse_line(line):
        state.handle(event)

password = "password"
stream = open_socket("localhost", "7373", password=password, timeout=5)

link = TunerLink(stream, on_line=on_line, on_close=lambda: print("disconnected"))
link.start()
link.write("T95000")
```

Parsing a spectral scan:

```python
from xdrtuner.scan import parse_scan

scan = parse_scan("87500=30.5,87600=42.0,")
for node in scan.signals:
    print(node.freq, node.signal)
```

Choosing a filter for a requested bandwidth:

```python
from xdrtuner.filters import Mode, filter_index_from_bw, filter_bw_from_index

index = filter_index_from_bw(150000, Mode.FM, tef668x=True)
print(filter_bw_from_index(index, Mode.FM, tef668x=True))
```

Bridging to StationList:

```python
from xdrtuner.stationlist import StationListServer

with StationListServer(9031, get_freq=state.get_freq,
                       get_bw=lambda: state.bandwidth,
                       set_freq=lambda khz: link.write(f"T{khz}")) as server:
    server.buffer.freq(state.get_freq())
```

## What is not included

There is no graphical interface, settings dialog or command-line
program, and no configuration storage. RDS groups are parsed into
blocks and error levels, but PS, RadioText, PTY, AF lists and other
RDS fields are not decoded from them, and nothing is written to log
files.

## Tests

The test suite uses pytest and lives in `tests/`:

```
pip install -e .[test]
pytest
```