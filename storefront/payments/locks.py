"""
Sérialisation par payment intent (dans le processus).
Le reconciler (remplacement des produits) et le webhook (passage en 'complete') prennent
le même verrou pour un intent donné; entre processus, les écritures restent conditionnées
et indexées par la colonne unique payment_intent_id (voir orders.repository).
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

from storefront.config import LOCK_TIMEOUT_SECONDS
from .errors import ConcurrentUpdate

_registry_lock = threading.Lock()
# intent_id -> [verrou, nombre d'utilisateurs]
_locks: Dict[str, List] = {}


def _acquire_entry(key: str) -> threading.Lock:
    with _registry_lock:
        entry = _locks.get(key)
        if entry is None:
            entry = [threading.Lock(), 0]
            _locks[key] = entry
        entry[1] += 1
        return entry[0]


def _release_entry(key: str) -> None:
    with _registry_lock:
        entry = _locks.get(key)
        if entry is None:
            return
        entry[1] -= 1
        if entry[1] <= 0:
            del _locks[key]


@contextmanager
def intent_lock(payment_intent_id: str, timeout: float | None = None) -> Iterator[None]:
    """Section critique pour un intent; ConcurrentUpdate si le verrou n'est pas obtenu à temps."""
    lock = _acquire_entry(payment_intent_id)
    try:
        if not lock.acquire(timeout=LOCK_TIMEOUT_SECONDS if timeout is None else timeout):
            raise ConcurrentUpdate()
        try:
            yield
        finally:
            lock.release()
    finally:
        _release_entry(payment_intent_id)


def active_locks() -> int:
    with _registry_lock:
        return len(_locks)
