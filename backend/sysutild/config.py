import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

CONFIG_PATH = Path(os.environ.get("SYSUTILD_CONFIG") or "/etc/openhd/sysutild.json")

DEFAULT_CONFIG: Dict[str, Any] = {
    # Persisted overrides (the only files this daemon writes)
    "overrides_path": "/usr/local/share/OpenHD/SysUtils/wifi_overrides.conf",
    "tx_power_overrides_path": "/usr/local/share/OpenHD/SysUtils/wifi_txpower.conf",

    # Chipset power catalog (read-only)
    "wifi_cards_path": "/usr/local/share/OpenHD/SysUtils/wifi_cards.json",

    # Peer control process
    "control_socket_path": "/run/openhd/openhd_ctrl.sock",
    "control_timeout_ms": 900,

    # Hardware discovery root
    "net_root": "/sys/class/net",

    # Where consumers connect to us
    "listen_socket_path": "/run/openhd/sysutils.sock",
}

# key -> environment variable
_ENV_KEYS: Dict[str, str] = {
    "overrides_path": "SYSUTILD_OVERRIDES_PATH",
    "tx_power_overrides_path": "SYSUTILD_TXPOWER_PATH",
    "wifi_cards_path": "SYSUTILD_WIFI_CARDS_PATH",
    "control_socket_path": "SYSUTILD_CONTROL_SOCKET",
    "control_timeout_ms": "SYSUTILD_CONTROL_TIMEOUT_MS",
    "net_root": "SYSUTILD_NET_ROOT",
    "listen_socket_path": "SYSUTILD_SOCKET",
}

_INT_KEYS = {"control_timeout_ms"}


@dataclass(frozen=True)
class Settings:
    overrides_path: Path
    tx_power_overrides_path: Path
    wifi_cards_path: Path
    control_socket_path: Path
    control_timeout_ms: int
    net_root: Path
    listen_socket_path: Path


def read_config_file(path: Path = None) -> Dict[str, Any]:
    """
    Returns the raw JSON content on disk (or {} if missing/invalid).
    """
    path = path or CONFIG_PATH
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
        return data if isinstance(data, dict) else {}
    except Exception:
        return {}


def _coerce(key: str, value: Any, fallback: Any) -> Any:
    if key in _INT_KEYS:
        try:
            return int(value)
        except (TypeError, ValueError):
            return fallback
    if not isinstance(value, str) or not value.strip():
        return fallback
    return value.strip()


def _apply_env(cfg: Dict[str, Any], environ=None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    out = dict(cfg)
    for key, var in _ENV_KEYS.items():
        raw = (env.get(var) or "").strip()
        if raw:
            out[key] = _coerce(key, raw, out[key])
    return out


def load_config(path: Path = None, environ=None) -> Dict[str, Any]:
    """
    Returns DEFAULT_CONFIG merged with on-disk config, then environment overrides.
    """
    cfg = DEFAULT_CONFIG.copy()
    for key, value in read_config_file(path).items():
        if key in DEFAULT_CONFIG:
            cfg[key] = _coerce(key, value, cfg[key])
    return _apply_env(cfg, environ)


def settings_from_config(cfg: Dict[str, Any]) -> Settings:
    merged = DEFAULT_CONFIG.copy()
    merged.update(cfg or {})
    return Settings(
        overrides_path=Path(merged["overrides_path"]),
        tx_power_overrides_path=Path(merged["tx_power_overrides_path"]),
        wifi_cards_path=Path(merged["wifi_cards_path"]),
        control_socket_path=Path(merged["control_socket_path"]),
        control_timeout_ms=int(merged["control_timeout_ms"]),
        net_root=Path(merged["net_root"]),
        listen_socket_path=Path(merged["listen_socket_path"]),
    )


def load_settings(path: Path = None, environ=None) -> Settings:
    return settings_from_config(load_config(path, environ))
