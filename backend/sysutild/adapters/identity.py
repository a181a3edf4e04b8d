"""
Best-effort identity of a network interface from sysfs.

Nothing in here raises for missing or garbled sysfs data: absent values simply
stay empty strings. All filesystem access goes through a SysfsReader so the
walk can be exercised against a synthetic tree.
"""
import os
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from sysutild.textutil import (
    contains_after_uppercase,
    equal_after_uppercase,
    normalize_id,
    to_upper,
    trim,
)

# How far up the resolved device path we look for vendor/device attributes.
MAX_SYSFS_DEPTH = 6

_DRIVER_RE = re.compile(r"DRIVER=(\w+)")
_UEVENT_PCI_RE = re.compile(r"PCI_ID=([0-9A-Fa-f]{4}):([0-9A-Fa-f]{4})")
_UEVENT_PRODUCT_RE = re.compile(r"PRODUCT=([0-9A-Fa-f]{4})/([0-9A-Fa-f]{4})/")
_MODALIAS_USB_RE = re.compile(r"usb:v([0-9A-Fa-f]{4})p([0-9A-Fa-f]{4})")
_MODALIAS_PCI_RE = re.compile(r"pci:v([0-9A-Fa-f]{4})d([0-9A-Fa-f]{4})")

# Exact driver-name matches, checked before the substring table.
_DRIVER_EXACT = (
    ("rtl88xxau_ohd", "OPENHD_RTL_88X2AU"),
    ("rtl88x2au_ohd", "OPENHD_RTL_88X2CU"),
    ("rtl88x2bu_ohd", "OPENHD_RTL_88X2BU"),
    ("rtl88x2eu_ohd", "OPENHD_RTL_88X2EU"),
    ("cnss_pci", "QUALCOMM"),
    ("rtl8852bu_ohd", "OPENHD_RTL_8852BU"),
    ("rtl88x2cu_ohd", "OPENHD_RTL_88X2CU"),
)

_DRIVER_SUBSTRING = (
    ("ath9k", "ATHEROS"),
    ("rt2800usb", "RALINK"),
    ("iwlwifi", "INTEL"),
    ("brcmfmac", "BROADCOM"),
    ("bcmsdh_sdmmc", "BROADCOM"),
    ("aicwf_sdio", "AIC"),
    ("88xxau", "RTL_88X2AU"),
    ("rtw_8822bu", "RTL_88X2BU"),
    ("mt7921u", "MT_7921u"),
)

UNKNOWN_TYPE = "UNKNOWN"


class LocalSysfs:
    """SysfsReader backed by the real filesystem."""

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def read_text(self, path: str) -> Optional[str]:
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                return f.read()
        except OSError:
            return None

    def realpath(self, path: str) -> str:
        return os.path.realpath(path)

    def listdir(self, path: str):
        try:
            return sorted(os.listdir(path))
        except OSError:
            return []


@dataclass
class InterfaceIdentity:
    interface_name: str
    driver_name: str = ""
    phy_index: int = -1
    mac: str = ""
    vendor_id: str = ""
    device_id: str = ""


def driver_to_type(driver_name: str) -> str:
    for name, type_name in _DRIVER_EXACT:
        if equal_after_uppercase(driver_name, name):
            return type_name
    for fragment, type_name in _DRIVER_SUBSTRING:
        if contains_after_uppercase(driver_name, fragment):
            return type_name
    return UNKNOWN_TYPE


def is_openhd_wifibroadcast_type(type_name: str) -> bool:
    upper = to_upper(trim(type_name))
    return bool(upper) and upper.startswith("OPENHD_")


def extract_driver_name(uevent: str) -> Optional[str]:
    m = _DRIVER_RE.search(uevent or "")
    return m.group(1) if m else None


def _fill_pair(m, vendor: str, device: str) -> Tuple[str, str]:
    if not vendor:
        vendor = normalize_id(m.group(1))
    if not device:
        device = normalize_id(m.group(2))
    return vendor, device


def fill_vendor_device_from_uevent(uevent: str, vendor: str, device: str) -> Tuple[str, str]:
    if vendor and device:
        return vendor, device
    for pattern in (_UEVENT_PCI_RE, _UEVENT_PRODUCT_RE):
        m = pattern.search(uevent or "")
        if m:
            return _fill_pair(m, vendor, device)
    return vendor, device


def fill_vendor_device_from_modalias(modalias: str, vendor: str, device: str) -> Tuple[str, str]:
    if vendor and device:
        return vendor, device
    for pattern in (_MODALIAS_USB_RE, _MODALIAS_PCI_RE):
        m = pattern.search(modalias or "")
        if m:
            return _fill_pair(m, vendor, device)
    return vendor, device


def _read_id(fs, path: str) -> str:
    return normalize_id(fs.read_text(path) or "")


def fill_vendor_device_from_sysfs(
    device_path: str,
    vendor: str = "",
    device: str = "",
    fs=None,
) -> Tuple[str, str]:
    """
    Climb from the resolved device path towards the root looking for IDs.

    At each level, in order: vendor/device, idVendor/idProduct, uevent
    (PCI_ID then PRODUCT), modalias (usb then pci). Sources only fill values
    that are still empty. Stops once both are known or after MAX_SYSFS_DEPTH
    levels.
    """
    fs = fs or LocalSysfs()
    if not device_path:
        return vendor, device

    current = fs.realpath(device_path)
    for _depth in range(MAX_SYSFS_DEPTH):
        if not current:
            break

        if not vendor and fs.exists(os.path.join(current, "vendor")):
            vendor = _read_id(fs, os.path.join(current, "vendor"))
        if not device and fs.exists(os.path.join(current, "device")):
            device = _read_id(fs, os.path.join(current, "device"))
        if not vendor and fs.exists(os.path.join(current, "idVendor")):
            vendor = _read_id(fs, os.path.join(current, "idVendor"))
        if not device and fs.exists(os.path.join(current, "idProduct")):
            device = _read_id(fs, os.path.join(current, "idProduct"))

        uevent_path = os.path.join(current, "uevent")
        if fs.exists(uevent_path):
            vendor, device = fill_vendor_device_from_uevent(fs.read_text(uevent_path) or "", vendor, device)

        modalias_path = os.path.join(current, "modalias")
        if fs.exists(modalias_path):
            vendor, device = fill_vendor_device_from_modalias(fs.read_text(modalias_path) or "", vendor, device)

        if vendor and device:
            break

        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent

    return vendor, device


def _read_int(fs, path: str) -> Optional[int]:
    text = trim(fs.read_text(path))
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def identify_interface(interface_name: str, net_root: str = "/sys/class/net", fs=None) -> InterfaceIdentity:
    fs = fs or LocalSysfs()
    ident = InterfaceIdentity(interface_name=interface_name)

    iface_dir = os.path.join(str(net_root), interface_name)
    device_path = os.path.join(iface_dir, "device")
    uevent_path = os.path.join(device_path, "uevent")
    # Legacy madwifi: ath0 hangs its device node off the parent wifi0.
    if interface_name == "ath0" and not fs.exists(uevent_path):
        device_path = os.path.join(str(net_root), "wifi0", "device")
        uevent_path = os.path.join(device_path, "uevent")

    uevent = fs.read_text(uevent_path) or ""
    if uevent:
        ident.driver_name = extract_driver_name(uevent) or ""

    phy_index = _read_int(fs, os.path.join(iface_dir, "phy80211", "index"))
    if phy_index is not None:
        ident.phy_index = phy_index

    ident.mac = trim(fs.read_text(os.path.join(iface_dir, "address")))

    ident.vendor_id, ident.device_id = fill_vendor_device_from_sysfs(
        device_path, ident.vendor_id, ident.device_id, fs
    )
    if uevent:
        ident.vendor_id, ident.device_id = fill_vendor_device_from_uevent(
            uevent, ident.vendor_id, ident.device_id
        )
    return ident
