# services/api/core/properties.py
"""
Durable key-value state kept outside the spreadsheet.

Holds per-batch side data (client name, photo folder id) under namespaced
keys such as "CLIENT_<batchId>" / "PHOTOS_<batchId>". Backed by a single JSON
file written atomically. No locking: concurrent writers may lose an update.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def client_key(batch_id: str) -> str:
    return f"CLIENT_{batch_id}"


def photos_key(batch_id: str) -> str:
    return f"PHOTOS_{batch_id}"


class PropertyStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        if not self.path.is_absolute():
            self.path = Path(__file__).resolve().parent.parent / self.path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logger.warning("Property file %s is corrupt; treating as empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        # Write to temporary file first, then atomic rename
        tmp_file = self.path.with_suffix(".tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp_file.replace(self.path)

    def get_property(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_property(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)
