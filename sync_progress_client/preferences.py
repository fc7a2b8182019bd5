import json
from pathlib import Path
from typing import Iterable, Optional, Union

from loguru import logger

ACTIVE_TAB_KEY = "erp_sync_active_tab"


class TabPreference:
    """Remembers the last active tab between sessions in a small JSON file"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences at {self.path}: {e}")
            return {}

    def save(self, tab: str) -> None:
        data = self._read()
        data[ACTIVE_TAB_KEY] = tab
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def load(self) -> Optional[str]:
        return self._read().get(ACTIVE_TAB_KEY)

    def restore(self, available_tabs: Iterable[str]) -> Optional[str]:
        tab = self.load()
        if tab is not None and tab in set(available_tabs):
            return tab
        return None
