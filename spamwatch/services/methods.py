from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger("methods")

_DATA_DIR = Path(__file__).resolve().parent.parent.parent / "data"
DEFAULT_METHODS_FILE = _DATA_DIR / "methods.json"

_SELECTOR_RE = re.compile(r"^0x[0-9a-f]{8}$")
_SELECTOR_LEN = 10


class MethodTable:
    """Read-only selector -> method name lookup, keys lower-cased."""

    def __init__(self, methods: Mapping[str, str] | None = None):
        table: dict[str, str] = {}
        for selector, name in (methods or {}).items():
            key = selector.lower()
            if not _SELECTOR_RE.match(key):
                logger.warning(f"Skipping malformed selector {selector!r} ({name})")
                continue
            table[key] = name
        self._methods = MappingProxyType(table)

    @classmethod
    def load(cls, path: str | Path | None = None) -> MethodTable:
        path = Path(path) if path else DEFAULT_METHODS_FILE
        data = json.loads(path.read_text())
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a JSON object of selector -> name")
        table = cls(data)
        logger.info(f"Loaded {table.count} method selectors from {path}")
        return table

    def get(self, selector: str) -> str | None:
        return self._methods.get(selector.lower())

    def __contains__(self, selector: object) -> bool:
        return isinstance(selector, str) and selector.lower() in self._methods

    @property
    def methods(self) -> Mapping[str, str]:
        return self._methods

    @property
    def count(self) -> int:
        return len(self._methods)


class MethodClassifier:
    def __init__(self, table: MethodTable):
        self._table = table

    def classify(self, calldata: str) -> str | None:
        """Return the lower-cased selector if the calldata calls a known method."""
        if len(calldata) < _SELECTOR_LEN:
            return None
        selector = calldata[:_SELECTOR_LEN].lower()
        return selector if selector in self._table else None

    def method_name(self, selector: str) -> str:
        return self._table.get(selector) or "unknown"
