"""SRCP (StationList) radio control over UDP."""

from __future__ import annotations

import re
import socket
import sys
import threading
from typing import Callable

APP_NAME = "XDR-GTK"

RECEIVE_LIMIT = 1024 - 1
SEND_INTERVAL = 0.2
POLL_INTERVAL = 0.2
AF_BUFFER_LEN = 25

# Parameters dropped from the pending message when the frequency changes.
RDS_PARAMS = frozenset({"pi", "pty", "ecc", "ps", "rt", "af"})

_INT_RE = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str) -> int:
    match = _INT_RE.match(text)
    return int(match.group(1)) if match else 0


def _char_codes(text: str | bytes) -> bytes:
    return text.encode("utf-8") if isinstance(text, str) else bytes(text)


def _signed_char(byte: int) -> int:
    """Value of a byte read as a signed char and printed as unsigned int."""
    return byte | 0xFFFFFF00 if byte >= 0x80 else byte


def parse_commands(msg: str) -> list[tuple[str, str]]:
    """Split ``param=value;param=value`` into pairs; items without "=" are skipped."""
    commands = []
    for item in msg.split(";"):
        parts = item.split("=", 2)
        if len(parts) >= 2:
            commands.append((parts[0], parts[1]))
    return commands


def encode_ps(ps: str | bytes) -> str:
    """Encode the eight PS characters as space padded hexadecimal codes."""
    codes = _char_codes(ps)
    if len(codes) < 8:
        raise ValueError("PS must hold at least 8 characters")
    return "".join(f"{_signed_char(byte):2X}" for byte in codes[:8])


def encode_rt(rt: str | bytes) -> str:
    """Encode RadioText as two-digit hexadecimal character codes."""
    return "".join(f"{_signed_char(byte):02X}" for byte in _char_codes(rt))


class StationListBuffer:
    """Parameters waiting to be sent, in the order they were first set."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, str] = {}
        self._af = [0] * AF_BUFFER_LEN
        self._af_pos = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def items(self) -> list[tuple[str, str]]:
        """Return a snapshot of the pending parameters."""
        with self._lock:
            return list(self._items.items())

    def add(self, param: str, value: str) -> None:
        """Set a parameter, keeping its place if it is already pending."""
        with self._lock:
            self._items[param] = value

    def clear_rds(self) -> None:
        """Drop pending RDS parameters and the AF list."""
        with self._lock:
            for param in [p for p in self._items if p in RDS_PARAMS]:
                del self._items[param]
            self._reset_af()

    def freq(self, freq: int) -> None:
        """Report a new frequency in kHz (sent in Hz); RDS data is dropped."""
        self.clear_rds()
        self.add("freq", str(freq * 1000))

    def rcvlevel(self, level: int) -> None:
        self.add("RcvLevel", str(level))

    def pi(self, pi: int) -> None:
        self.add("pi", f"{pi & 0xFFFFFFFF:04X}")

    def pty(self, pty: int) -> None:
        self.add("pty", f"{pty & 0xFFFFFFFF:01X}")

    def ecc(self, ecc: int) -> None:
        self.add("ecc", f"{ecc & 0xFF:02X}")

    def ps(self, ps: str | bytes) -> None:
        self.add("ps", encode_ps(ps))

    def rt(self, n: int, rt: str | bytes) -> None:
        """Report RadioText *n* (0 or 1) as parameter rt1 or rt2."""
        self.add(f"rt{n + 1}", encode_rt(rt))

    def bw(self, bw: int) -> None:
        self.add("bandwidth", str(bw))

    def af(self, af: int) -> None:
        """Append an AF code to the ring of the last 25 and report the ring."""
        with self._lock:
            self._af[self._af_pos] = af & 0xFF
            self._af_pos = (self._af_pos + 1) % AF_BUFFER_LEN
            value = "".join(f"{code:02X}" for code in self._af)
        self.add("af", value)

    def af_clear(self) -> None:
        """Empty the AF ring."""
        with self._lock:
            self._reset_af()

    def _reset_af(self) -> None:
        self._af = [0] * AF_BUFFER_LEN
        self._af_pos = 0

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def take_message(self, sender: str = APP_NAME) -> str | None:
        """Return the pending parameters as one message and empty the buffer."""
        with self._lock:
            if not self._items:
                return None
            parts = [f"from={sender}"]
            parts.extend(f"{param}={value}" for param, value in self._items.items())
            self._items.clear()
        return ";".join(parts)


class StationListServer:
    """UDP endpoint answering and updating a StationList client.

    Commands arrive on *port*; reports go to the last sender's host on
    ``port - 1``. *set_freq* receives kHz, *set_bw* the requested bandwidth.
    """

    def __init__(
        self,
        port: int,
        buffer: StationListBuffer | None = None,
        get_freq: Callable[[], int] | None = None,
        get_bw: Callable[[], int] | None = None,
        set_freq: Callable[[int], object] | None = None,
        set_bw: Callable[[int], object] | None = None,
    ) -> None:
        self.port = port
        self.buffer = buffer if buffer is not None else StationListBuffer()
        self._get_freq = get_freq
        self._get_bw = get_bw
        self._set_freq = set_freq
        self._set_bw = set_bw
        self.client_address = ("127.0.0.1", port - 1)
        self._server: socket.socket | None = None
        self._client: socket.socket | None = None
        self._running = threading.Event()
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        """Bind the command port and start receiving and sending."""
        if self.is_up():
            raise RuntimeError("server already running")
        server = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        if sys.platform != "win32":
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            server.bind(("", self.port))
        except OSError as exc:
            server.close()
            raise OSError(
                f"Failed to bind to a port: {self.port}. "
                "It may be already in use by another application."
            ) from exc
        server.settimeout(POLL_INTERVAL)
        self._server = server
        self._client = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.client_address = ("127.0.0.1", self.port - 1)
        self.buffer.af_clear()
        self._running.set()
        self._threads = [
            threading.Thread(target=self._receive_loop, name="stationlist", daemon=True),
            threading.Thread(target=self._send_loop, name="stationlist-send", daemon=True),
        ]
        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        """Close the sockets, stop the threads and drop pending data."""
        if not self.is_up():
            return
        self._running.clear()
        for thread in self._threads:
            if thread is not threading.current_thread():
                thread.join()
        self._threads = []
        for sock in (self._client, self._server):
            if sock is not None:
                sock.close()
        self._client = None
        self._server = None
        self.buffer.clear()

    def is_up(self) -> bool:
        return self._server is not None and self._client is not None

    def __enter__(self) -> StationListServer:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def send_pending(self) -> str | None:
        """Send the pending parameters, if any; returns the message sent."""
        message = self.buffer.take_message(APP_NAME)
        if message is not None and self._client is not None:
            try:
                self._client.sendto(message.encode("latin-1"), self.client_address)
            except OSError:
                pass
        return message

    def handle_datagram(self, data: bytes, address) -> None:
        """Execute the commands of one received datagram."""
        text = data[:RECEIVE_LIMIT].decode("latin-1")
        for param, value in parse_commands(text):
            self._command(param, value)
        self.client_address = (address[0], self.port - 1)

    def _command(self, param: str, value: str) -> None:
        name = param.lower()
        query = value == "?"
        if name == "freq":
            if query:
                if self._get_freq is not None:
                    self.buffer.freq(self._get_freq())
            elif self._set_freq is not None:
                hz = _atoi(value)
                khz = abs(hz) // 1000
                self._set_freq(-khz if hz < 0 else khz)
        elif name == "bandwidth":
            if query:
                if self._get_bw is not None:
                    self.buffer.bw(self._get_bw())
            elif self._set_bw is not None:
                self._set_bw(_atoi(value))

    def _receive_loop(self) -> None:
        while self._running.is_set():
            server = self._server
            if server is None:
                return
            try:
                data, address = server.recvfrom(RECEIVE_LIMIT)
            except socket.timeout:
                continue
            except OSError:
                return
            if not data:
                return
            self.handle_datagram(data, address)

    def _send_loop(self) -> None:
        while not self._wait_stopped(SEND_INTERVAL):
            self.send_pending()

    def _wait_stopped(self, interval: float) -> bool:
        stopped = threading.Event()
        stopped.wait(interval)
        return not self._running.is_set()