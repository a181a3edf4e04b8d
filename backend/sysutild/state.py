import logging
import threading
from typing import Tuple

from sysutild.adapters.identity import is_openhd_wifibroadcast_type
from sysutild.adapters.inventory import WifiCardInfo, resolve_wifi_cards
from sysutild.config import Settings
from sysutild.overrides import PowerOverrideStore, TypeOverrideStore

log = logging.getLogger("sysutild.state")


class WifiState:
    """
    Owner of the resolved card list.

    The list is an immutable tuple swapped in one assignment, so readers always
    see a complete snapshot. `refresh_lock` serializes resolve+swap;
    `override_lock` serializes load-modify-write cycles on the override files.
    """

    def __init__(self, settings: Settings, fs=None):
        self.settings = settings
        self.type_overrides = TypeOverrideStore(settings.overrides_path)
        self.power_overrides = PowerOverrideStore(settings.tx_power_overrides_path)
        self.refresh_lock = threading.Lock()
        self.override_lock = threading.RLock()
        self._fs = fs
        self._cards: Tuple[WifiCardInfo, ...] = ()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def refresh(self) -> Tuple[WifiCardInfo, ...]:
        with self.refresh_lock:
            cards = tuple(resolve_wifi_cards(self.settings, fs=self._fs))
            self._cards = cards
            self._initialized = True
        log.info("wifi_cards_refreshed count=%d", len(cards))
        return cards

    def cards(self) -> Tuple[WifiCardInfo, ...]:
        if not self._initialized:
            return self.refresh()
        return self._cards

    def has_openhd_wifibroadcast_cards(self) -> bool:
        return any(
            not card.disabled and is_openhd_wifibroadcast_type(card.effective_type)
            for card in self.cards()
        )
