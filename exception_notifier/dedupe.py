import threading
import time
from typing import Dict, Optional, Tuple


class TTLCounterStore:
    """
    Store chave -> contador em memória, com expiração por entrada.
    Atende à interface usada pelo agrupamento: read(key) e write(key, value, ttl).
    Cada operação é protegida por lock; a sequência read+write de quem chama não é atômica.
    """

    def __init__(self, max_size: int = 5000, clock=time.monotonic):
        self.max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        # chave -> (valor, expira_em)
        self._store: Dict[str, Tuple[int, float]] = {}

    def _evict_if_needed(self):
        # Remove expirados e controla tamanho
        now = self._clock()
        expired_keys = [k for k, (_, expires_at) in self._store.items() if expires_at <= now]
        for k in expired_keys:
            self._store.pop(k, None)
        # Se ainda acima do limite, remove os que expiram primeiro
        if len(self._store) > self.max_size:
            ordered = sorted(self._store, key=lambda k: self._store[k][1])
            for k in ordered[: (len(self._store) - self.max_size)]:
                self._store.pop(k, None)

    def read(self, key: str) -> Optional[int]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                self._store.pop(key, None)
                return None
            return value

    def write(self, key: str, value: int, ttl: float):
        with self._lock:
            self._store[key] = (value, self._clock() + ttl)
            self._evict_if_needed()

    def clear(self):
        with self._lock:
            self._store.clear()

    def __len__(self):
        with self._lock:
            return len(self._store)
