"""
One-shot request/response exchange with the OpenHD control socket.

The peer not running is the normal case on many setups, so every failure mode
collapses to "no response" (None) and is only logged at DEBUG.
"""
import logging
import os
import select
import socket
import time
from typing import Optional

log = logging.getLogger("sysutild.control")

DEFAULT_SOCKET_PATH = "/run/openhd/openhd_ctrl.sock"
DEFAULT_TIMEOUT_MS = 900
MAX_LINE_LENGTH = 4096
_RECV_CHUNK = 256


def write_all(sock: socket.socket, data: bytes) -> bool:
    offset = 0
    flags = getattr(socket, "MSG_NOSIGNAL", 0)
    while offset < len(data):
        try:
            written = sock.send(data[offset:], flags)
        except InterruptedError:
            continue
        except OSError as exc:
            log.debug("control_send_failed: %s", exc)
            return False
        if written <= 0:
            return False
        offset += written
    return True


def read_line_with_timeout(sock: socket.socket, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> Optional[str]:
    """
    Read up to the first newline before an absolute deadline.

    Returns the line without its terminator, or None on timeout, peer close,
    poll/recv error, or MAX_LINE_LENGTH bytes without a newline.
    """
    buffer = bytearray()
    deadline = time.monotonic() + timeout_ms / 1000.0
    poller = select.poll()
    poller.register(sock.fileno(), select.POLLIN)

    while len(buffer) < MAX_LINE_LENGTH:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return None
        try:
            ready = poller.poll(max(1, int(remaining * 1000)))
        except InterruptedError:
            continue
        except OSError as exc:
            log.debug("control_poll_failed: %s", exc)
            return None
        if not ready:
            return None

        try:
            chunk = sock.recv(_RECV_CHUNK)
        except (BlockingIOError, InterruptedError):
            continue
        except OSError as exc:
            log.debug("control_recv_failed: %s", exc)
            return None
        if not chunk:
            return None

        buffer.extend(chunk)
        pos = buffer.find(b"\n")
        if pos >= 0:
            return buffer[:pos].decode("utf-8", errors="replace")

    return None


def send_openhd_control(
    payload: str,
    *,
    socket_path: str = DEFAULT_SOCKET_PATH,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> Optional[str]:
    if not os.path.exists(socket_path):
        log.debug("control_socket_missing", extra={"path": str(socket_path)})
        return None

    try:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    except OSError as exc:
        log.debug("control_socket_create_failed: %s", exc)
        return None

    try:
        # Bounds connect and send; the reply wait runs on its own deadline.
        sock.settimeout(timeout_ms / 1000.0)
        try:
            sock.connect(str(socket_path))
        except OSError as exc:
            log.debug("control_connect_failed: %s", exc, extra={"path": str(socket_path)})
            return None
        if not write_all(sock, payload.encode("utf-8")):
            return None
        return read_line_with_timeout(sock, timeout_ms)
    finally:
        sock.close()
