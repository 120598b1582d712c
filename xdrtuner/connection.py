"""Connections to the tuner over a serial port or a TCP socket."""

from __future__ import annotations

import hashlib
import logging
import os
import select
import socket
import sys
import threading
import time
from typing import Any, Callable

import serial

from xdrtuner.protocol import parse_line

log = logging.getLogger(__name__)

SERIAL_BAUDRATE = 115200
SERIAL_READ_TIMEOUT = 0.05
# The Arduino inside the tuner may restart while the port is being opened.
SERIAL_STARTUP_DELAY = 1.75
SERIAL_RESTART_PULSE = 0.01

SOCKET_SALT_LEN = 16
SOCKET_AUTH_TIMEOUT = 5.0
SOCKET_POLL_INTERVAL = 0.05
SOCKET_TCP_KEEPCNT = 2
SOCKET_TCP_KEEPINTVL = 10
SOCKET_TCP_KEEPIDLE = 30

# Longer lines are clipped to this many bytes.
LINE_LIMIT = 10000 - 1


class ConnectionFailed(Exception):
    """Opening a connection to the tuner failed."""

    code = 0


class SerialOpenError(ConnectionFailed):
    """The serial port could not be opened or configured."""

    code = -1


class SocketResolveError(ConnectionFailed):
    """The host name could not be resolved."""

    code = -1


class SocketConnectError(ConnectionFailed):
    """The TCP connection could not be established."""

    code = -2


class SocketAuthError(ConnectionFailed):
    """The server did not send a valid authentication salt in time."""

    code = -3


class SocketWriteError(ConnectionFailed):
    """The authentication response could not be sent."""

    code = -4


def auth_response(salt: bytes | str, password: str | bytes | None = None) -> bytes:
    """Return the SHA-1 hex digest of salt and password, ending with a newline."""
    if isinstance(salt, str):
        salt = salt.encode("latin-1")
    if len(salt) != SOCKET_SALT_LEN:
        raise ValueError(f"salt must be {SOCKET_SALT_LEN} bytes long")
    digest = hashlib.sha1(salt)
    if password:
        digest.update(password.encode("utf-8") if isinstance(password, str) else password)
    return digest.hexdigest().encode("ascii") + b"\n"


def _write_socket(sock: socket.socket, data: bytes) -> bool:
    try:
        sock.sendall(data)
    except OSError:
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        return False
    return True


def _receive_salt(sock: socket.socket, timeout: float) -> bytes:
    expected = SOCKET_SALT_LEN + 1
    deadline = time.monotonic() + timeout
    received = b""
    while len(received) < expected:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise SocketAuthError("timed out waiting for the salt")
        sock.settimeout(remaining)
        try:
            chunk = sock.recv(expected - len(received))
        except OSError as exc:
            raise SocketAuthError("failed to receive the salt") from exc
        if not chunk:
            raise SocketAuthError("connection closed before the salt was received")
        received += chunk
    return received[:SOCKET_SALT_LEN]


def _enable_keepalive(sock: socket.socket) -> None:
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    except OSError:
        return
    if sys.platform == "win32" and hasattr(socket, "SIO_KEEPALIVE_VALS"):
        try:
            sock.ioctl(
                socket.SIO_KEEPALIVE_VALS,
                (1, SOCKET_TCP_KEEPIDLE * 1000,
                 SOCKET_TCP_KEEPINTVL * SOCKET_TCP_KEEPCNT * 1000 // 10),
            )
        except (OSError, ValueError):
            pass
        return
    idle = getattr(socket, "TCP_KEEPIDLE", None)
    if idle is None:
        idle = getattr(socket, "TCP_KEEPALIVE", None)
    options = (
        (getattr(socket, "TCP_KEEPCNT", None), SOCKET_TCP_KEEPCNT),
        (getattr(socket, "TCP_KEEPINTVL", None), SOCKET_TCP_KEEPINTVL),
        (idle, SOCKET_TCP_KEEPIDLE),
    )
    for option, value in options:
        if option is None:
            continue
        try:
            sock.setsockopt(socket.IPPROTO_TCP, option, value)
        except OSError:
            pass


def open_socket(
    hostname: str,
    port: int | str,
    password: str | None = None,
    timeout: float = SOCKET_AUTH_TIMEOUT,
) -> socket.socket:
    """Connect to a network tuner and authenticate.

    The server sends a 16-byte salt followed by a newline; the reply is the
    SHA-1 of salt and password. *timeout* bounds the connect and the wait
    for the salt. Returns the connected socket in blocking mode.
    """
    try:
        infos = socket.getaddrinfo(hostname, port, socket.AF_INET, socket.SOCK_STREAM)
    except (OSError, UnicodeError) as exc:
        raise SocketResolveError(f"cannot resolve {hostname}:{port}") from exc
    if not infos:
        raise SocketResolveError(f"cannot resolve {hostname}:{port}")

    family, socktype, proto, _, address = infos[0]
    sock = socket.socket(family, socktype, proto)
    try:
        sock.settimeout(timeout)
        sock.connect(address)
    except OSError as exc:
        sock.close()
        raise SocketConnectError(f"cannot connect to {hostname}:{port}") from exc

    try:
        salt = _receive_salt(sock, timeout)
    except SocketAuthError:
        sock.close()
        raise

    sock.settimeout(timeout)
    if not _write_socket(sock, auth_response(salt, password)):
        sock.close()
        raise SocketWriteError("failed to send the authentication response")

    sock.settimeout(None)
    _enable_keepalive(sock)
    return sock


def open_serial(port_name: str) -> serial.Serial:
    """Open a serial port by its short name at 115200 baud, 8N1, no flow control."""
    if os.name == "nt":
        path = "\\\\.\\" + port_name
    else:
        path = "/dev/" + port_name
    try:
        port = serial.Serial(
            path,
            baudrate=SERIAL_BAUDRATE,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=SERIAL_READ_TIMEOUT,
            xonxoff=False,
            rtscts=False,
        )
        port.reset_input_buffer()
        port.reset_output_buffer()
    except (OSError, ValueError) as exc:
        raise SerialOpenError(f"cannot open serial port {path}") from exc
    return port


def restart_serial(port: Any) -> None:
    """Pulse DTR and RTS low to restart the tuner's controller."""
    try:
        port.dtr = False
        port.rts = False
        time.sleep(SERIAL_RESTART_PULSE)
        port.dtr = True
        port.rts = True
    except OSError:
        return


class TunerLink:
    """Line-oriented link to a tuner running on a background thread.

    *stream* is a connected socket or a serial port object. Every received
    line is passed to *on_line*; *on_close* is called once the link ends.
    """

    def __init__(
        self,
        stream: Any,
        on_line: Callable[[str], Any],
        on_close: Callable[[], Any] | None = None,
    ) -> None:
        self._stream = stream
        self._on_line = on_line
        self._on_close = on_close
        self._is_socket = isinstance(stream, socket.socket)
        self._buffer = bytearray()
        self._canceled = threading.Event()
        self._write_lock = threading.Lock()
        self._thread: threading.Thread | None = None

    @property
    def is_socket(self) -> bool:
        return self._is_socket

    @property
    def canceled(self) -> bool:
        return self._canceled.is_set()

    def start(self) -> None:
        """Start the reader thread."""
        if self._thread is not None:
            raise RuntimeError("link already started")
        self._thread = threading.Thread(target=self._run, name="tuner", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        """Ask the reader thread to stop and close the stream."""
        self._canceled.set()

    def write(self, command: str) -> bool:
        """Send one command line; returns False when writing failed."""
        message = (command + "\n").encode("latin-1")
        with self._write_lock:
            if self._is_socket:
                ok = _write_socket(self._stream, message)
            else:
                try:
                    self._stream.write(message)
                    ok = True
                except OSError:
                    ok = False
        log.debug("write%s: %s", "" if ok else " ERROR", command)
        return ok

    def feed(self, data: bytes) -> bool:
        """Process received bytes; returns False once a line ends the session."""
        for byte in data:
            if byte != 0x0A:
                if len(self._buffer) < LINE_LIMIT:
                    self._buffer.append(byte)
                continue
            line = self._buffer.decode("latin-1")
            self._buffer.clear()
            log.debug("read: %s", line)
            self._on_line(line)
            if any(event.stops for event in parse_line(line)):
                return False
        return True

    def _read(self) -> bytes | None:
        """Return received bytes, b"" when nothing arrived, None at the end."""
        if self._is_socket:
            try:
                ready, _, _ = select.select([self._stream], [], [], SOCKET_POLL_INTERVAL)
                if not ready:
                    return b""
                data = self._stream.recv(4096)
            except (OSError, ValueError):
                return None
            return data or None
        try:
            size = getattr(self._stream, "in_waiting", 0) or 1
            return self._stream.read(size) or b""
        except OSError:
            return None

    def _close_stream(self) -> None:
        if self._is_socket:
            try:
                self._stream.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._stream.close()
        else:
            restart_serial(self._stream)
            try:
                self._stream.close()
            except OSError:
                pass

    def _run(self) -> None:
        log.debug("thread start: %r", self)
        try:
            if not self._is_socket:
                self._canceled.wait(SERIAL_STARTUP_DELAY)
            if not self._canceled.is_set():
                self.write("x")
                while not self._canceled.is_set():
                    data = self._read()
                    if data is None:
                        break
                    if data and not self.feed(data):
                        break
        finally:
            self._close_stream()
            if self._on_close is not None:
                self._on_close()
            log.debug("thread stop: %r", self)