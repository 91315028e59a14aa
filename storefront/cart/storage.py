"""
Stockage durable du panier côté client, indexé par nom de store (ex: "cart-store").
Format de l'entrée: {"state": {...}, "version": 0}.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from storefront.config import CART_STORAGE_DIR

logger = logging.getLogger(__name__)

STORAGE_VERSION = 0


class CartStorage:
    """Interface minimale: lecture/écriture/suppression d'une entrée JSON par nom."""

    def get_item(self, name: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def set_item(self, name: str, value: Dict[str, Any]) -> None:
        raise NotImplementedError

    def remove_item(self, name: str) -> None:
        raise NotImplementedError


class MemoryStorage(CartStorage):
    def __init__(self):
        self._data: Dict[str, str] = {}

    def get_item(self, name: str) -> Optional[Dict[str, Any]]:
        raw = self._data.get(name)
        return json.loads(raw) if raw is not None else None

    def set_item(self, name: str, value: Dict[str, Any]) -> None:
        # Sérialisé comme sur disque: aucune référence partagée avec l'appelant
        self._data[name] = json.dumps(value)

    def remove_item(self, name: str) -> None:
        self._data.pop(name, None)


class JsonFileStorage(CartStorage):
    """
    Un fichier <directory>/<name>.json par store.
    - Écriture atomique (fichier temporaire + os.replace) pour survivre à un arrêt brutal.
    - Lecture tolérante: fichier absent ou illisible => None (le store repart à vide).
    """

    def __init__(self, directory: Optional[Path | str] = None):
        self.directory = Path(directory or CART_STORAGE_DIR)

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    def get_item(self, name: str) -> Optional[Dict[str, Any]]:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("cart.storage unreadable entry name=%s path=%s", name, path)
            return None

    def set_item(self, name: str, value: Dict[str, Any]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=str(self.directory), prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh)
            os.replace(tmp, self._path(name))
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def remove_item(self, name: str) -> None:
        try:
            self._path(name).unlink()
        except FileNotFoundError:
            pass
