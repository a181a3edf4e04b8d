"""
Chipset power profiles for known Wi-Fi adapters.

Profiles come from the wifi_cards.json catalog when it yields at least one card,
otherwise from DEFAULT_PROFILES. Catalog layout:

    {
      "cards": [
        {
          "vendor_id": "0x0BDA", "device_id": "0xA81A",
          "chipset": "OPENHD_RTL_88X2EU", "name": "LB-Link 8812eu",
          "power_mode": "mw",
          "min_mw": 25, "max_mw": 1000,
          "levels_mw": {"lowest": 25, "low": 100, "mid": 500, "high": 1000}
        }
      ]
    }
"""
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from sysutild.protocol import extract_int_field, extract_string_field
from sysutild.textutil import (
    equal_after_uppercase,
    extract_array_objects,
    extract_object_field,
    normalize_chipset,
    normalize_id,
    to_upper,
)

log = logging.getLogger("sysutild.adapters.profiles")

POWER_MODE_MW = "MW"
POWER_MODE_FIXED = "FIXED"

LEVEL_FIELDS = ("lowest", "low", "mid", "high")


@dataclass(frozen=True)
class CardProfile:
    vendor_id: str
    device_id: str
    chipset: str = ""
    name: str = ""
    power_mode: str = POWER_MODE_MW
    min_mw: int = 0
    max_mw: int = 0
    lowest_mw: int = 0
    low_mw: int = 0
    mid_mw: int = 0
    high_mw: int = 0

    @property
    def fixed(self) -> bool:
        return to_upper(self.power_mode) == POWER_MODE_FIXED

    def level_mw(self, level: str) -> int:
        """Milliwatts for a symbolic level (LOWEST/LOW/MID/HIGH), 0 if unknown."""
        lvl = (level or "").strip().lower()
        if lvl not in LEVEL_FIELDS:
            return 0
        return getattr(self, f"{lvl}_mw")


DEFAULT_PROFILES = (
    CardProfile(
        vendor_id=normalize_id("0x02D0"),
        device_id=normalize_id("0xA9A6"),
        chipset=normalize_chipset("BROADCOM"),
        name="Raspberry Internal",
        power_mode=POWER_MODE_FIXED,
    ),
    CardProfile(
        vendor_id=normalize_id("0x0BDA"),
        device_id=normalize_id("0xA81A"),
        chipset=normalize_chipset("OPENHD_RTL_88X2EU"),
        name="LB-Link 8812eu",
        power_mode=POWER_MODE_MW,
        min_mw=25,
        max_mw=1000,
        lowest_mw=25,
        low_mw=100,
        mid_mw=500,
        high_mw=1000,
    ),
)

# Each figure left at <= 0 takes the first positive value from its list.
# Evaluated top to bottom; later rows see earlier backfills.
_BACKFILL_ORDER = (
    ("min_mw", ("lowest_mw", "low_mw", "mid_mw", "high_mw")),
    ("max_mw", ("high_mw", "mid_mw", "low_mw", "lowest_mw")),
    ("lowest_mw", ("low_mw", "mid_mw", "high_mw", "min_mw")),
    ("low_mw", ("lowest_mw", "mid_mw", "high_mw", "min_mw")),
    ("mid_mw", ("low_mw", "high_mw", "max_mw")),
    ("high_mw", ("max_mw", "mid_mw", "low_mw", "lowest_mw")),
)


def default_profiles() -> List[CardProfile]:
    return list(DEFAULT_PROFILES)


def _first_positive(values: Sequence[int]) -> int:
    for value in values:
        if value > 0:
            return value
    return 0


def _backfill(figures: Dict[str, int]) -> Dict[str, int]:
    out = dict(figures)
    # A second pass catches figures whose sources were only filled later in
    # the first (e.g. a catalog entry that gives nothing but max_mw).
    for _pass in range(2):
        for target, sources in _BACKFILL_ORDER:
            if out[target] <= 0:
                out[target] = _first_positive([out[s] for s in sources])
    return out


def parse_profile_object(obj: str) -> Optional[CardProfile]:
    """
    Parse one catalog card. Returns None when vendor_id or device_id is missing.
    """
    vendor = extract_string_field(obj, "vendor_id")
    device = extract_string_field(obj, "device_id")
    if vendor is None or device is None:
        return None

    profile = CardProfile(
        vendor_id=normalize_id(vendor),
        device_id=normalize_id(device),
        chipset=normalize_chipset(extract_string_field(obj, "chipset") or ""),
        name=extract_string_field(obj, "name") or "",
        power_mode=to_upper(extract_string_field(obj, "power_mode") or "mw"),
    )
    if profile.power_mode == POWER_MODE_FIXED:
        return profile

    figures = {
        "min_mw": extract_int_field(obj, "min_mw") or 0,
        "max_mw": extract_int_field(obj, "max_mw") or 0,
        "lowest_mw": extract_int_field(obj, "lowest") or 0,
        "low_mw": extract_int_field(obj, "low") or 0,
        "mid_mw": extract_int_field(obj, "mid") or 0,
        "high_mw": extract_int_field(obj, "high") or 0,
    }

    levels = extract_object_field(obj, "levels_mw")
    if levels is not None:
        for name in LEVEL_FIELDS:
            key = f"{name}_mw"
            if figures[key] <= 0:
                figures[key] = extract_int_field(levels, name) or 0

    return replace(profile, **_backfill(figures))


def parse_profiles(content: str) -> List[CardProfile]:
    profiles: List[CardProfile] = []
    for obj in extract_array_objects(content, "cards"):
        profile = parse_profile_object(obj)
        if profile is None:
            log.debug("catalog_card_skipped_missing_ids")
            continue
        profiles.append(profile)
    return profiles


def load_wifi_card_profiles(path: Path) -> List[CardProfile]:
    """
    Never empty: falls back to the built-in defaults when the catalog is
    missing, unreadable or has no usable cards.
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        log.debug("catalog_unavailable_using_defaults", extra={"path": str(path)})
        return default_profiles()

    profiles = parse_profiles(content)
    if not profiles:
        log.info("catalog_empty_using_defaults", extra={"path": str(path)})
        return default_profiles()
    return profiles


def find_wifi_profile(
    profiles: Sequence[CardProfile],
    vendor_id: str,
    device_id: str,
    chipset: str,
) -> Optional[CardProfile]:
    """
    Exact chipset match wins outright; otherwise the first chipset-less
    (generic) profile for the vendor/device; otherwise the first vendor/device
    match in list order.
    """
    vendor_device_match: Optional[CardProfile] = None
    generic_match: Optional[CardProfile] = None

    for profile in profiles:
        if not (
            equal_after_uppercase(profile.vendor_id, vendor_id)
            and equal_after_uppercase(profile.device_id, device_id)
        ):
            continue
        if not profile.chipset:
            if generic_match is None:
                generic_match = profile
        elif equal_after_uppercase(profile.chipset, chipset):
            return profile
        if vendor_device_match is None:
            vendor_device_match = profile

    if generic_match is not None:
        return generic_match
    return vendor_device_match
