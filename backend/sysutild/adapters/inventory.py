import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from sysutild.adapters.identity import LocalSysfs, driver_to_type, identify_interface
from sysutild.adapters.profiles import CardProfile, find_wifi_profile, load_wifi_card_profiles
from sysutild.config import Settings
from sysutild.overrides import (
    DISABLED_TYPE,
    PowerOverride,
    PowerOverrideStore,
    TypeOverrideStore,
    get_power_override,
)
from sysutild.textutil import equal_after_uppercase, to_upper

log = logging.getLogger("sysutild.adapters.inventory")

DEFAULT_NET_ROOT = "/sys/class/net"


@dataclass
class WifiCardInfo:
    interface_name: str
    driver_name: str = ""
    phy_index: int = -1
    mac: str = ""
    vendor_id: str = ""
    device_id: str = ""

    detected_type: str = ""
    override_type: str = ""
    effective_type: str = ""
    disabled: bool = False

    power_mode: str = ""
    power_level: str = ""
    power_min: str = ""
    power_max: str = ""
    power_lowest: str = ""
    power_low: str = ""
    power_mid: str = ""
    power_high: str = ""
    tx_power: str = ""
    tx_power_high: str = ""
    tx_power_low: str = ""
    card_name: str = ""


def _mw_str(value: int) -> str:
    return str(value) if value > 0 else ""


def select_profile(
    profiles: Sequence[CardProfile],
    vendor_id: str,
    device_id: str,
    detected_type: str,
    tx_override: Optional[PowerOverride],
) -> Optional[CardProfile]:
    """
    Hardware IDs pick the profile unless the override pins one. A pin that
    matches nothing (even generically) leaves the hardware match in place.
    """
    profile = find_wifi_profile(profiles, vendor_id, device_id, detected_type)
    if tx_override is None or not tx_override.has_profile_pin():
        return profile

    chipset = tx_override.profile_chipset or detected_type
    pinned = find_wifi_profile(
        profiles, tx_override.profile_vendor_id, tx_override.profile_device_id, chipset
    )
    if pinned is None:
        pinned = find_wifi_profile(
            profiles, tx_override.profile_vendor_id, tx_override.profile_device_id, ""
        )
    return pinned or profile


def _apply_profile(card: WifiCardInfo, profile: CardProfile) -> None:
    if not card.card_name:
        card.card_name = profile.name
    card.power_mode = profile.power_mode
    card.power_lowest = _mw_str(profile.lowest_mw)
    card.power_low = _mw_str(profile.low_mw)
    card.power_mid = _mw_str(profile.mid_mw)
    card.power_high = _mw_str(profile.high_mw)
    card.power_min = _mw_str(profile.min_mw)
    card.power_max = _mw_str(profile.max_mw)


def _apply_power_override(card: WifiCardInfo, tx_override: PowerOverride) -> None:
    card.tx_power = tx_override.tx_power
    card.tx_power_high = tx_override.tx_power_high
    card.tx_power_low = tx_override.tx_power_low
    if tx_override.card_name:
        card.card_name = tx_override.card_name
    card.power_level = tx_override.power_level


def _resolve_power(card: WifiCardInfo, profile: Optional[CardProfile]) -> None:
    if card.power_level:
        card.power_level = to_upper(card.power_level)

    # Symbolic levels are re-derived every cycle so catalog edits take effect.
    if profile is not None and card.power_level and not profile.fixed:
        selected = profile.level_mw(card.power_level)
        if selected > 0:
            card.tx_power = str(selected)

    if profile is not None and profile.fixed:
        card.power_level = "FIXED"
        card.tx_power = ""

    if profile is not None:
        if not card.tx_power_high and profile.high_mw > 0:
            card.tx_power_high = str(profile.high_mw)
        if not card.tx_power_low and profile.lowest_mw > 0:
            card.tx_power_low = str(profile.lowest_mw)


def build_wifi_card(
    interface_name: str,
    overrides: Dict[str, str],
    tx_overrides: Dict[str, PowerOverride],
    profiles: Sequence[CardProfile],
    *,
    net_root: str = DEFAULT_NET_ROOT,
    fs=None,
) -> WifiCardInfo:
    ident = identify_interface(interface_name, net_root=net_root, fs=fs)
    card = WifiCardInfo(
        interface_name=interface_name,
        driver_name=ident.driver_name,
        phy_index=ident.phy_index,
        mac=ident.mac,
        vendor_id=ident.vendor_id,
        device_id=ident.device_id,
    )
    card.detected_type = driver_to_type(card.driver_name)

    override_type = overrides.get(interface_name)
    if override_type is not None:
        card.override_type = override_type
        if equal_after_uppercase(override_type, DISABLED_TYPE):
            card.disabled = True
            card.effective_type = card.detected_type
        else:
            card.effective_type = override_type
    else:
        card.effective_type = card.detected_type

    tx_override = get_power_override(tx_overrides, interface_name)
    profile = select_profile(profiles, card.vendor_id, card.device_id, card.detected_type, tx_override)

    if profile is not None:
        _apply_profile(card, profile)
    if tx_override is not None:
        _apply_power_override(card, tx_override)
    _resolve_power(card, profile)
    return card


def list_wireless_interfaces(net_root: str = DEFAULT_NET_ROOT, fs=None) -> List[str]:
    """Interfaces under net_root that expose a phy80211 link, sorted by name."""
    fs = fs or LocalSysfs()
    return [
        name
        for name in fs.listdir(str(net_root))
        if fs.exists(os.path.join(str(net_root), name, "phy80211"))
    ]


def detect_wifi_cards(
    overrides: Dict[str, str],
    tx_overrides: Dict[str, PowerOverride],
    profiles: Sequence[CardProfile],
    *,
    net_root: str = DEFAULT_NET_ROOT,
    fs=None,
) -> List[WifiCardInfo]:
    fs = fs or LocalSysfs()
    return [
        build_wifi_card(iface, overrides, tx_overrides, profiles, net_root=net_root, fs=fs)
        for iface in list_wireless_interfaces(net_root, fs)
    ]


def resolve_wifi_cards(settings: Settings, fs=None) -> List[WifiCardInfo]:
    overrides = TypeOverrideStore(settings.overrides_path).load()
    tx_overrides = PowerOverrideStore(settings.tx_power_overrides_path).load()
    profiles = load_wifi_card_profiles(settings.wifi_cards_path)
    cards = detect_wifi_cards(
        overrides, tx_overrides, profiles, net_root=str(settings.net_root), fs=fs
    )
    log.debug("wifi_cards_resolved count=%d profiles=%d", len(cards), len(profiles))
    return cards
