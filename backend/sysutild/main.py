import logging
import signal
import sys
import threading

from sysutild.api import Dispatcher
from sysutild.config import load_settings
from sysutild.logging import setup_logging
from sysutild.server import build_server
from sysutild.state import WifiState

log = logging.getLogger("sysutild.main")


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def _handler(signum, _frame):
        if stop_event.is_set():
            return
        try:
            sig_name = signal.Signals(signum).name
        except ValueError:
            sig_name = str(signum)
        log.info("shutdown_signal:%s", sig_name)
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        signal.signal(sig, _handler)


def main():
    setup_logging()
    settings = load_settings()
    log.info(
        "overrides=%s txpower=%s catalog=%s control=%s net_root=%s",
        settings.overrides_path,
        settings.tx_power_overrides_path,
        settings.wifi_cards_path,
        settings.control_socket_path,
        settings.net_root,
    )

    state = WifiState(settings)
    try:
        state.refresh()
        if state.has_openhd_wifibroadcast_cards():
            log.info("openhd_wifibroadcast_cards_present")
    except Exception:
        # Cards are resolved lazily again on first request.
        log.exception("initial_refresh_failed")

    server = build_server(Dispatcher(state), settings.listen_socket_path)
    stop_event = threading.Event()
    _install_signal_handlers(stop_event)

    server_thread = threading.Thread(
        target=server.serve_forever,
        name="sysutild-lines",
        daemon=True,
    )
    server_thread.start()

    try:
        while server_thread.is_alive() and not stop_event.wait(0.5):
            pass
    finally:
        stop_event.set()
        try:
            server.shutdown()
        except Exception:
            log.exception("server_shutdown_failed")
        try:
            server.server_close()
        except Exception:
            log.exception("server_close_failed")
        server_thread.join(timeout=5)
    return 0


if __name__ == "__main__":
    sys.exit(main())
