import json
from dataclasses import replace

from sysutild.adapters import inventory
from sysutild.adapters.profiles import CardProfile
from sysutild.config import settings_from_config
from sysutild.overrides import PowerOverride

MW_PROFILE = CardProfile(
    vendor_id="0x10EC",
    device_id="0x8812",
    name="Test 8812",
    power_mode="MW",
    min_mw=25,
    max_mw=1000,
    lowest_mw=25,
    low_mw=100,
    mid_mw=500,
    high_mw=1000,
)
FIXED_PROFILE = CardProfile(
    vendor_id="0x02D0",
    device_id="0xA9A6",
    chipset="BROADCOM",
    name="Raspberry Internal",
    power_mode="FIXED",
)


def _add_iface(net_root, name, *, driver="rtl88x2au_ohd", vendor="10ec", device="8812", phy=0):
    dev = net_root.parent / "devices" / name
    dev.mkdir(parents=True)
    (dev / "uevent").write_text(f"DRIVER={driver}\n")
    (dev / "vendor").write_text(f"0x{vendor}\n")
    (dev / "device").write_text(f"0x{device}\n")

    iface = net_root / name
    iface.mkdir(parents=True)
    (iface / "device").symlink_to(dev)
    (iface / "phy80211").mkdir()
    (iface / "phy80211" / "index").write_text(f"{phy}\n")
    (iface / "address").write_text("00:c0:ca:00:00:01\n")
    return iface


def _card(tmp_path, overrides=None, tx_overrides=None, profiles=(MW_PROFILE,), **iface_kw):
    net_root = tmp_path / "net"
    _add_iface(net_root, "wlan0", **iface_kw)
    return inventory.build_wifi_card(
        "wlan0",
        overrides or {},
        tx_overrides or {},
        list(profiles),
        net_root=str(net_root),
    )


def test_end_to_end_mw_profile_without_overrides(tmp_path):
    card = _card(tmp_path)
    assert card.driver_name == "rtl88x2au_ohd"
    assert (card.vendor_id, card.device_id) == ("0x10EC", "0x8812")
    assert card.phy_index == 0
    assert card.mac == "00:c0:ca:00:00:01"
    assert card.detected_type == "OPENHD_RTL_88X2CU"
    assert card.effective_type == card.detected_type
    assert card.override_type == ""
    assert card.disabled is False
    assert card.power_mode == "MW"
    assert card.power_high == "1000"
    assert card.power_lowest == "25"
    assert card.card_name == "Test 8812"
    assert card.tx_power == ""
    assert card.tx_power_high == "1000"
    assert card.tx_power_low == "25"


def test_type_override_replaces_effective_type(tmp_path):
    card = _card(tmp_path, overrides={"wlan0": "OPENHD_RTL_88X2BU"})
    assert card.override_type == "OPENHD_RTL_88X2BU"
    assert card.effective_type == "OPENHD_RTL_88X2BU"
    assert card.disabled is False


def test_disabled_override_keeps_detected_type(tmp_path):
    card = _card(tmp_path, overrides={"wlan0": "disabled"})
    assert card.disabled is True
    assert card.override_type == "disabled"
    assert card.effective_type == "OPENHD_RTL_88X2CU"
    # Still fully described.
    assert card.power_high == "1000"


def test_power_level_high_sets_tx_power(tmp_path):
    tx = {"wlan0": PowerOverride(power_level="high")}
    card = _card(tmp_path, tx_overrides=tx)
    assert card.power_level == "HIGH"
    assert card.tx_power == "1000"


def test_power_level_tracks_catalog_changes(tmp_path):
    tx = {"wlan0": PowerOverride(power_level="HIGH")}
    net_root = tmp_path / "net"
    _add_iface(net_root, "wlan0")
    first = inventory.build_wifi_card("wlan0", {}, tx, [MW_PROFILE], net_root=str(net_root))
    second = inventory.build_wifi_card(
        "wlan0", {}, tx, [replace(MW_PROFILE, high_mw=800)], net_root=str(net_root)
    )
    assert first.tx_power == "1000"
    assert second.tx_power == "800"


def test_power_level_with_unusable_figure_keeps_raw_tx_power(tmp_path):
    tx = {"wlan0": PowerOverride(power_level="TURBO", tx_power="321")}
    card = _card(tmp_path, tx_overrides=tx)
    assert card.tx_power == "321"
    assert card.power_level == "TURBO"


def test_fixed_profile_clears_tx_power(tmp_path):
    tx = {"wlan0": PowerOverride(tx_power="500", power_level="HIGH", tx_power_high="900")}
    card = _card(tmp_path, tx_overrides=tx, profiles=(FIXED_PROFILE,), vendor="02d0", device="a9a6")
    assert card.power_mode == "FIXED"
    assert card.power_level == "FIXED"
    assert card.tx_power == ""
    assert card.power_high == ""
    # Raw bounds survive; only tx_power is forced empty.
    assert card.tx_power_high == "900"
    assert card.tx_power_low == ""


def test_raw_overrides_beat_profile_defaults(tmp_path):
    tx = {"wlan0": PowerOverride(tx_power="150", tx_power_high="700", tx_power_low="50", card_name="Mine")}
    card = _card(tmp_path, tx_overrides=tx)
    assert card.card_name == "Mine"
    assert (card.tx_power, card.tx_power_high, card.tx_power_low) == ("150", "700", "50")


def test_no_profile_leaves_power_unresolved(tmp_path):
    tx = {"wlan0": PowerOverride(power_level="HIGH", tx_power="42")}
    card = _card(tmp_path, tx_overrides=tx, vendor="abcd", device="0001")
    assert card.power_mode == ""
    assert card.card_name == ""
    assert card.tx_power == "42"
    assert card.power_level == "HIGH"
    assert card.tx_power_high == ""


def test_profile_pin_selects_other_profile(tmp_path):
    pinned = CardProfile("0x0BDA", "0xA81A", "OPENHD_RTL_88X2EU", "LB-Link", "MW", high_mw=2000, lowest_mw=10)
    tx = {"wlan0": PowerOverride(profile_vendor_id="0x0BDA", profile_device_id="0xA81A")}
    card = _card(tmp_path, tx_overrides=tx, profiles=(MW_PROFILE, pinned))
    # No pinned chipset: the detected type is tried as chipset and misses,
    # so the first vendor/device match for the pinned IDs is used.
    assert card.card_name == "LB-Link"
    assert card.power_high == "2000"


def test_profile_pin_with_unknown_ids_keeps_hardware_profile(tmp_path):
    tx = {"wlan0": PowerOverride(profile_vendor_id="0xFFFF", profile_device_id="0xFFFF")}
    card = _card(tmp_path, tx_overrides=tx)
    assert card.card_name == "Test 8812"


def test_profile_pin_chipset_exact_match(tmp_path):
    a = CardProfile("0x0BDA", "0xA81A", "CHIPA", "A", "MW", high_mw=100)
    b = CardProfile("0x0BDA", "0xA81A", "CHIPB", "B", "MW", high_mw=200)
    tx = {"wlan0": PowerOverride(profile_vendor_id="0x0BDA", profile_device_id="0xA81A", profile_chipset="CHIPB")}
    card = _card(tmp_path, tx_overrides=tx, profiles=(MW_PROFILE, a, b))
    assert card.card_name == "B"


def test_detect_wifi_cards_only_phy80211_interfaces(tmp_path):
    net_root = tmp_path / "net"
    _add_iface(net_root, "wlan1", phy=1)
    _add_iface(net_root, "wlan0", phy=0)
    (net_root / "eth0").mkdir()
    cards = inventory.detect_wifi_cards({}, {}, [MW_PROFILE], net_root=str(net_root))
    assert [c.interface_name for c in cards] == ["wlan0", "wlan1"]
    assert [c.phy_index for c in cards] == [0, 1]


def test_detect_wifi_cards_missing_root(tmp_path):
    assert inventory.detect_wifi_cards({}, {}, [MW_PROFILE], net_root=str(tmp_path / "none")) == []


def test_resolve_wifi_cards_reads_all_sources(tmp_path):
    net_root = tmp_path / "net"
    _add_iface(net_root, "wlan0")
    catalog = tmp_path / "wifi_cards.json"
    catalog.write_text(
        json.dumps(
            {"cards": [{"vendor_id": "0x10EC", "device_id": "0x8812", "levels_mw": {"lowest": 25, "high": 1000}}]}
        )
    )
    (tmp_path / "wifi_overrides.conf").write_text("wlan0=OPENHD_RTL_88X2AU\n")
    (tmp_path / "wifi_txpower.conf").write_text("wlan0.power_level=low\n")
    settings = settings_from_config(
        {
            "net_root": str(net_root),
            "wifi_cards_path": str(catalog),
            "overrides_path": str(tmp_path / "wifi_overrides.conf"),
            "tx_power_overrides_path": str(tmp_path / "wifi_txpower.conf"),
        }
    )
    (card,) = inventory.resolve_wifi_cards(settings)
    assert card.effective_type == "OPENHD_RTL_88X2AU"
    assert card.power_mode == "MW"
    assert card.power_high == "1000"
    # low backfilled from lowest.
    assert card.power_level == "LOW"
    assert card.tx_power == "25"
