"""
Persisted per-interface overrides.

Two flat key=value files:

  wifi_overrides.conf   wlan0=OPENHD_RTL_88X2AU      (forced type, or DISABLED)
  wifi_txpower.conf     wlan0.power_level=HIGH       (power/profile overrides)

Readers never fail: a missing or unreadable file is an empty store and garbage
lines are skipped. Writers return False on any filesystem error.
"""
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Optional, Tuple

from sysutild.textutil import equal_after_uppercase, normalize_chipset, normalize_id, to_upper, trim

log = logging.getLogger("sysutild.overrides")

TYPE_OVERRIDES_HEADER = "# OpenHD SysUtils Wi-Fi overrides"
POWER_OVERRIDES_HEADER = "# OpenHD SysUtils Wi-Fi TX power overrides"

DISABLED_TYPE = "DISABLED"
AUTO_VALUE = "AUTO"


@dataclass
class PowerOverride:
    tx_power: str = ""
    tx_power_high: str = ""
    tx_power_low: str = ""
    card_name: str = ""
    power_level: str = ""
    profile_vendor_id: str = ""
    profile_device_id: str = ""
    profile_chipset: str = ""

    def is_empty(self) -> bool:
        return not any(getattr(self, f.name) for f in fields(self))

    def has_profile_pin(self) -> bool:
        return bool(self.profile_vendor_id and self.profile_device_id)

    def clear_tx_power(self) -> None:
        self.tx_power = ""
        self.tx_power_high = ""
        self.tx_power_low = ""

    def set_power_level(self, value: str) -> None:
        """Empty or AUTO drops the level. Any level change drops explicit tx power."""
        if not value or equal_after_uppercase(value, AUTO_VALUE):
            self.power_level = ""
        else:
            self.power_level = to_upper(trim(value))
        self.clear_tx_power()

    def set_profile_pin(self, vendor_id: str, device_id: str, chipset: str) -> None:
        if not vendor_id or not device_id:
            self.profile_vendor_id = ""
            self.profile_device_id = ""
            self.profile_chipset = ""
            return
        self.profile_vendor_id = normalize_id(vendor_id)
        self.profile_device_id = normalize_id(device_id)
        self.profile_chipset = normalize_chipset(chipset)


# On-disk field name -> normalizer applied on load.
_LOAD_FIELDS = {
    "TX_POWER": ("tx_power", None),
    "TX_POWER_HIGH": ("tx_power_high", None),
    "TX_POWER_LOW": ("tx_power_low", None),
    "CARD_NAME": ("card_name", None),
    "POWER_LEVEL": ("power_level", None),
    "PROFILE_VENDOR_ID": ("profile_vendor_id", normalize_id),
    "PROFILE_DEVICE_ID": ("profile_device_id", normalize_id),
    "PROFILE_CHIPSET": ("profile_chipset", normalize_chipset),
}

# Write order is part of the file format; keep it stable across runs.
_WRITE_ORDER: Tuple[str, ...] = (
    "profile_vendor_id",
    "profile_device_id",
    "profile_chipset",
    "card_name",
    "power_level",
    "tx_power",
    "tx_power_high",
    "tx_power_low",
)


def _read_directives(path: Path):
    """
    Yield (key, value) for every `key=value` line, trimmed. Comments, blank
    lines and lines without '=' are skipped.
    """
    try:
        text = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        return
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        yield key.strip(), value.strip()


def _write_atomic(path: Path, payload: str) -> None:
    path = Path(path)
    tmp = path.with_name(path.name + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(payload)
        f.flush()
        try:
            os.fsync(f.fileno())
        except OSError:
            # Some filesystems refuse fsync; the rename is what matters.
            pass
    os.replace(tmp, path)


def _write_or_report(path: Path, payload: str) -> bool:
    try:
        _write_atomic(path, payload)
    except OSError as exc:
        log.warning("override_write_failed: %s", exc, extra={"path": str(path)})
        return False
    return True


class TypeOverrideStore:
    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, str]:
        overrides: Dict[str, str] = {}
        for iface, type_name in _read_directives(self.path):
            if not iface or not type_name:
                continue
            overrides[iface] = type_name
        return overrides

    def write(self, data: Dict[str, str]) -> bool:
        lines = [TYPE_OVERRIDES_HEADER]
        for iface in sorted(data):
            lines.append(f"{iface}={data[iface]}")
        return _write_or_report(self.path, "\n".join(lines) + "\n")


class PowerOverrideStore:
    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, PowerOverride]:
        overrides: Dict[str, PowerOverride] = {}
        for key, value in _read_directives(self.path):
            if not key or "." not in key:
                continue
            iface, field = key.split(".", 1)
            iface = iface.strip()
            field = field.strip()
            if not iface or not field:
                continue
            target = _LOAD_FIELDS.get(to_upper(field))
            entry = overrides.setdefault(iface, PowerOverride())
            if target is None:
                continue
            attr, normalize = target
            setattr(entry, attr, normalize(value) if normalize else value)
        return overrides

    def write(self, data: Dict[str, PowerOverride]) -> bool:
        lines = [POWER_OVERRIDES_HEADER]
        for iface in sorted(data):
            entry = data[iface]
            if entry.is_empty():
                continue
            for attr in _WRITE_ORDER:
                value = getattr(entry, attr)
                if value:
                    lines.append(f"{iface}.{attr}={value}")
        return _write_or_report(self.path, "\n".join(lines) + "\n")


def get_power_override(data: Dict[str, PowerOverride], iface: str) -> Optional[PowerOverride]:
    entry = data.get(iface)
    if entry is None or entry.is_empty():
        return None
    return entry
