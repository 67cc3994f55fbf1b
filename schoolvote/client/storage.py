# schoolvote/client/storage.py
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

VOTER_ID_KEY = "voterId"
TOKEN_KEY = "token"


class LocalStore:
    """Small persistent key/value file, the client's equivalent of browser local storage."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        os.makedirs(self.path.parent, exist_ok=True)
        if not self.path.exists():
            self._write({})

    def _read(self) -> Dict[str, Any]:
        """
        Read the store file safely.
        If the file is empty or corrupted, auto-reset to {}.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if isinstance(data, dict):
                return data
        except (json.JSONDecodeError, FileNotFoundError):
            pass
        logger.warning(f"Local store {self.path} was unreadable, resetting")
        self._write({})
        return {}

    def _write(self, data: Dict[str, Any]) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)
