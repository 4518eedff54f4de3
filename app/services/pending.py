"""
Estado transitorio del 2FA: enrolamientos pendientes y desafíos de login.

Cada entrada vive en memoria, indexada por principal, con un vencimiento
que se chequea al leer. Nada de esto se persiste.
"""
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

Clock = Callable[[], float]


class _Expiring(Protocol):
    principal_id: str
    expires_at: float


@dataclass
class PendingEnrollment:
    principal_id: str
    secret: str                     # en claro: nunca sale de este proceso
    created_at: float
    expires_at: float
    attempts: int = 0

    def __repr__(self) -> str:
        # que el secreto no termine en un log por accidente
        return f"PendingEnrollment(principal_id={self.principal_id!r}, expires_at={self.expires_at})"


@dataclass
class PendingLoginChallenge:
    principal_id: str
    challenge_id: str
    created_at: float
    expires_at: float


@dataclass
class LoginLockout:
    """Fallos de TOTP en login por principal; sobrevive a logins nuevos."""
    principal_id: str
    expires_at: float               # se corre con cada fallo
    failures: int = 0


T = TypeVar("T", bound=_Expiring)


@dataclass
class ExpiringStore(Generic[T]):
    """A lo sumo una entrada por principal; ``put`` pisa la anterior."""

    clock: Clock = time.time
    _items: dict[str, T] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def put(self, item: T) -> T:
        with self._lock:
            self._items[item.principal_id] = item
        return item

    def get(self, principal_id: str) -> T | None:
        with self._lock:
            item = self._items.get(principal_id)
            if item is None:
                return None
            if self.clock() >= item.expires_at:
                del self._items[principal_id]
                return None
            return item

    def pop(self, principal_id: str) -> T | None:
        item = self.get(principal_id)
        self.discard(principal_id)
        return item

    def discard(self, principal_id: str) -> None:
        with self._lock:
            self._items.pop(principal_id, None)

    def purge_expired(self) -> int:
        """Limpieza opcional; la expiración ya se respeta en ``get``."""
        now = self.clock()
        with self._lock:
            expired = [k for k, v in self._items.items() if now >= v.expires_at]
            for k in expired:
                del self._items[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._items)
