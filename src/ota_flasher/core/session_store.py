"""
Remembered device addresses.

Maps a logical device name to the address it was last reached at. The store
is an explicit object handed to whoever needs it (the CLI); the protocol
core never reads it.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Name -> address map with optional JSON persistence.

    Example:
        store = SessionStore(Path("~/.ota_flasher/sessions.json").expanduser())
        store.load()
        store.set("shuttle-3", "192.168.1.42")
        store.save()
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else None
        self._entries: Dict[str, str] = {}

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._entries.get(key, default)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def remove(self, key: str) -> bool:
        """Forget `key`; returns False if it was not stored."""
        return self._entries.pop(key, None) is not None

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(sorted(self._entries.items()))

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def load(self) -> None:
        """
        Read entries from `path`. A missing file leaves the store empty.

        Raises:
            ValueError: If the file exists but is not a JSON object of strings
        """
        if self.path is None or not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Session store {self.path} is not valid JSON: {e}")
        if not isinstance(raw, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in raw.items()
        ):
            raise ValueError(f"Session store {self.path} must map names to addresses")
        self._entries = dict(raw)
        logger.debug(f"Loaded {len(self._entries)} sessions from {self.path}")

    def save(self) -> None:
        """Write entries to `path` (no-op for in-memory stores)."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._entries, indent=2, sort_keys=True), encoding="utf-8")


def resolve_address(store: Optional[SessionStore], value: str) -> str:
    """Return the remembered address for `value`, or `value` unchanged."""
    if store is None:
        return value
    return store.get(value, value)
