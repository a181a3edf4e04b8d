import logging
import os
import socketserver
from pathlib import Path

from sysutild.api import Dispatcher

log = logging.getLogger("sysutild.server")

# Longest inbound request line we accept.
MAX_REQUEST_LINE = 65536


class LineHandler(socketserver.StreamRequestHandler):
    """One client connection: a response line for every recognized request line."""

    def handle(self):
        dispatcher: Dispatcher = self.server.dispatcher
        while True:
            raw = self.rfile.readline(MAX_REQUEST_LINE)
            if not raw:
                return
            line = raw.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            try:
                response = dispatcher.handle_line(line)
            except Exception:
                log.exception("request_failed")
                continue
            if response is None:
                log.debug("request_ignored")
                continue
            try:
                self.wfile.write(response.encode("utf-8"))
                self.wfile.flush()
            except OSError:
                log.debug("client_gone")
                return


class SysutilServer(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True

    def __init__(self, socket_path: str, dispatcher: Dispatcher):
        self.dispatcher = dispatcher
        super().__init__(socket_path, LineHandler)


def build_server(dispatcher: Dispatcher, socket_path) -> SysutilServer:
    path = Path(socket_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    # Stale socket from a previous run would make bind() fail.
    if path.exists() or path.is_symlink():
        os.unlink(path)
    server = SysutilServer(str(path), dispatcher)
    log.info("listening", extra={"path": str(path)})
    return server
