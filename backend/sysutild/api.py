import logging
from typing import Callable, List, Optional, Sequence

from sysutild.adapters.inventory import WifiCardInfo
from sysutild.control import send_openhd_control
from sysutild.overrides import AUTO_VALUE, PowerOverride
from sysutild.protocol import (
    RawJson,
    encode_array,
    encode_line,
    encode_object,
    extract_bool_field,
    extract_int_field,
    extract_string_field,
)
from sysutild.state import WifiState
from sysutild.textutil import equal_after_uppercase, trim

log = logging.getLogger("sysutild.api")

MSG_WIFI_REQUEST = "sysutil.wifi.request"
MSG_WIFI_RESPONSE = "sysutil.wifi.response"
MSG_WIFI_UPDATE = "sysutil.wifi.update"
MSG_WIFI_UPDATE_RESPONSE = "sysutil.wifi.update.response"
MSG_LINK_CONTROL = "sysutil.link.control"
MSG_LINK_CONTROL_RESPONSE = "sysutil.link.control.response"
MSG_OPENHD_LINK_CONTROL = "openhd.link.control"

ACTION_SET = "set"
ACTION_CLEAR = "clear"
ACTION_REFRESH = "refresh"
ACTION_DETECT = "detect"

MSG_NO_RF_VALUES = "No RF values provided."
MSG_WIDTH_DISABLED = "40 MHz channel width is disabled."
MSG_CONTROL_UNAVAILABLE = "OpenHD control socket not available."
MSG_CONTROL_REJECTED = "OpenHD rejected the RF update."

# Administratively blocked channel width.
DISABLED_CHANNEL_WIDTH_MHZ = 40

_POWER_FIELDS = (
    "tx_power",
    "tx_power_high",
    "tx_power_low",
    "card_name",
    "power_level",
    "profile_vendor_id",
    "profile_device_id",
    "profile_chipset",
)

_LINK_INT_FIELDS = (
    "frequency_mhz",
    "channel_width_mhz",
    "mcs_index",
    "tx_power_mw",
    "tx_power_index",
)

# Characters that would split a line or re-key an entry in the override files.
_LINE_BREAKS = ("\n", "\r")
_INTERFACE_RESERVED = _LINE_BREAKS + ("=", ".")


def _contains_any(value: Optional[str], chars: Sequence[str]) -> bool:
    return bool(value) and any(ch in value for ch in chars)


def card_to_json(card: WifiCardInfo) -> str:
    return encode_object(
        [
            ("interface", card.interface_name),
            ("driver", card.driver_name),
            ("phy_index", card.phy_index),
            ("mac", card.mac),
            ("vendor_id", card.vendor_id),
            ("device_id", card.device_id),
            ("detected_type", card.detected_type),
            ("override_type", card.override_type),
            ("type", card.effective_type),
            ("tx_power", card.tx_power),
            ("tx_power_high", card.tx_power_high),
            ("tx_power_low", card.tx_power_low),
            ("card_name", card.card_name),
            ("power_mode", card.power_mode),
            ("power_level", card.power_level),
            ("power_lowest", card.power_lowest),
            ("power_low", card.power_low),
            ("power_mid", card.power_mid),
            ("power_high", card.power_high),
            ("power_min", card.power_min),
            ("power_max", card.power_max),
            ("disabled", card.disabled),
        ]
    )


def cards_to_json(cards: Sequence[WifiCardInfo]) -> RawJson:
    return encode_array(card_to_json(card) for card in cards)


def message_type(line: str) -> Optional[str]:
    return extract_string_field(line, "type")


def merge_power_override(entry: PowerOverride, values: dict) -> None:
    """
    Apply the power fields present in one update request to a stored record.

    power_level goes first and wipes raw tx power; raw values from the same
    request then land on top. A non-empty explicit tx_power drops the symbolic
    level, since the resolver would otherwise overwrite it on every cycle.
    """
    if values.get("card_name") is not None:
        entry.card_name = values["card_name"]
    if values.get("power_level") is not None:
        entry.set_power_level(values["power_level"])
    for attr in ("tx_power", "tx_power_high", "tx_power_low"):
        if values.get(attr) is not None:
            setattr(entry, attr, values[attr])
    if values.get("tx_power"):
        entry.power_level = ""

    pin_keys = ("profile_vendor_id", "profile_device_id", "profile_chipset")
    if any(values.get(k) is not None for k in pin_keys):
        entry.set_profile_pin(
            values.get("profile_vendor_id") or "",
            values.get("profile_device_id") or "",
            values.get("profile_chipset") or "",
        )


class Dispatcher:
    def __init__(
        self,
        state: WifiState,
        send_control: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.state = state
        self._send_control = send_control or self._default_send_control

    def _default_send_control(self, payload: str) -> Optional[str]:
        settings = self.state.settings
        return send_openhd_control(
            payload,
            socket_path=str(settings.control_socket_path),
            timeout_ms=settings.control_timeout_ms,
        )

    def handle_line(self, line: str) -> Optional[str]:
        """Response line for a recognized request, None for anything else."""
        msg_type = message_type(line)
        if msg_type == MSG_WIFI_REQUEST:
            return self.build_wifi_response()
        if msg_type == MSG_WIFI_UPDATE:
            return self.handle_wifi_update(line)
        if msg_type == MSG_LINK_CONTROL:
            return self.handle_link_control_request(line)
        return None

    def build_wifi_response(self) -> str:
        return encode_line(
            [
                ("type", MSG_WIFI_RESPONSE),
                ("ok", True),
                ("cards", cards_to_json(self.state.cards())),
            ]
        )

    # ---- sysutil.wifi.update ------------------------------------------------

    def _apply_set(self, line: str, iface: str, overrides: dict, tx_overrides: dict) -> bool:
        override_type = extract_string_field(line, "override_type")
        values = {name: extract_string_field(line, name) for name in _POWER_FIELDS}
        if _contains_any(override_type, _LINE_BREAKS) or any(
            _contains_any(v, _LINE_BREAKS) for v in values.values()
        ):
            log.warning("wifi_update_rejected_line_break", extra={"iface": iface})
            return False

        ok = True
        if override_type is not None:
            if not override_type or equal_after_uppercase(override_type, AUTO_VALUE):
                overrides.pop(iface, None)
            else:
                overrides[iface] = override_type
            ok = self.state.type_overrides.write(overrides) and ok

        if any(v is not None for v in values.values()):
            entry = tx_overrides.setdefault(iface, PowerOverride())
            merge_power_override(entry, values)
            if entry.is_empty():
                tx_overrides.pop(iface, None)
            ok = self.state.power_overrides.write(tx_overrides) and ok
        return ok

    def _apply_clear(self, iface: Optional[str], overrides: dict, tx_overrides: dict) -> bool:
        if iface:
            overrides.pop(iface, None)
            tx_overrides.pop(iface, None)
        else:
            overrides.clear()
            tx_overrides.clear()
        type_ok = self.state.type_overrides.write(overrides)
        power_ok = self.state.power_overrides.write(tx_overrides)
        return type_ok and power_ok

    def handle_wifi_update(self, line: str) -> str:
        action = extract_string_field(line, "action")
        if action is None:
            action = ACTION_REFRESH
        iface = extract_string_field(line, "interface")

        if action in (ACTION_REFRESH, ACTION_DETECT):
            ok = True
        elif action == ACTION_SET and (not iface or _contains_any(iface, _INTERFACE_RESERVED)):
            ok = False
        elif action in (ACTION_SET, ACTION_CLEAR):
            with self.state.override_lock:
                overrides = self.state.type_overrides.load()
                tx_overrides = self.state.power_overrides.load()
                if action == ACTION_SET:
                    ok = self._apply_set(line, iface, overrides, tx_overrides)
                else:
                    ok = self._apply_clear(iface, overrides, tx_overrides)
        else:
            ok = False

        log.info("wifi_update", extra={"action": action, "iface": iface or "", "ok": ok})

        fields: List[tuple] = [
            ("type", MSG_WIFI_UPDATE_RESPONSE),
            ("ok", ok),
            ("action", action),
        ]
        if ok:
            fields.append(("cards", cards_to_json(self.state.refresh())))
        return encode_line(fields)

    # ---- sysutil.link.control -----------------------------------------------

    def handle_link_control_request(self, line: str) -> str:
        iface = extract_string_field(line, "interface")
        ints = {name: extract_int_field(line, name) for name in _LINK_INT_FIELDS}
        power_level = extract_string_field(line, "power_level")

        log.info(
            "link_control_request freq=%s width=%s mcs=%s tx_mw=%s tx_idx=%s level=%s",
            ints["frequency_mhz"],
            ints["channel_width_mhz"],
            ints["mcs_index"],
            ints["tx_power_mw"],
            ints["tx_power_index"],
            power_level or "",
            extra={"iface": iface or "", "msg_type": MSG_LINK_CONTROL},
        )

        has_value = (
            bool(iface)
            or any(v is not None for v in ints.values())
            or bool(power_level)
        )

        ok = False
        message = ""
        if not has_value:
            message = MSG_NO_RF_VALUES
        elif ints["channel_width_mhz"] == DISABLED_CHANNEL_WIDTH_MHZ:
            message = MSG_WIDTH_DISABLED
        else:
            request: List[tuple] = [("type", MSG_OPENHD_LINK_CONTROL)]
            if iface:
                request.append(("interface", iface))
            for name in _LINK_INT_FIELDS:
                if ints[name] is not None:
                    request.append((name, ints[name]))
            level = trim(power_level)
            if level:
                request.append(("power_level", level))

            response = self._send_control(encode_line(request))
            if response is None:
                message = MSG_CONTROL_UNAVAILABLE
                log.info("link_control_no_response", extra={"msg_type": MSG_OPENHD_LINK_CONTROL})
            else:
                ok = bool(extract_bool_field(response, "ok"))
                message = extract_string_field(response, "message") or ""
                if not message and not ok:
                    message = MSG_CONTROL_REJECTED
                log.info("link_control_response: %s", response, extra={"ok": ok})

        fields: List[tuple] = [("type", MSG_LINK_CONTROL_RESPONSE), ("ok", ok)]
        if message:
            fields.append(("message", message))
        return encode_line(fields)
