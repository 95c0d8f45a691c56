"""Ephemeral, caller-local string-list storage keyed by namespace."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Protocol

logger = logging.getLogger(__name__)


class LocalStore(Protocol):
    def get(self, namespace: str) -> List[str]:
        ...

    def set(self, namespace: str, values: List[str]) -> None:
        ...


class MemoryLocalStore:
    """Per-process store; the default for a single caller session."""

    def __init__(self) -> None:
        self._data: Dict[str, List[str]] = {}

    def get(self, namespace: str) -> List[str]:
        return list(self._data.get(namespace, []))

    def set(self, namespace: str, values: List[str]) -> None:
        self._data[namespace] = list(values)


class JsonFileLocalStore:
    """Keeps every namespace in a single JSON document on disk."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, List[str]]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable local store %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {key: [str(v) for v in value] for key, value in data.items() if isinstance(value, list)}

    def get(self, namespace: str) -> List[str]:
        return self._read().get(namespace, [])

    def set(self, namespace: str, values: List[str]) -> None:
        data = self._read()
        data[namespace] = list(values)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, ensure_ascii=False, indent=2)
