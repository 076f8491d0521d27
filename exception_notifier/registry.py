import logging
import threading
from collections.abc import Mapping
from typing import Callable, Dict, List, Optional

from .services import NOTIFIER_TYPES

logger = logging.getLogger(__name__)


class UndefinedNotifierError(LookupError):
    """Nenhum construtor de notificador registrado para o tipo pedido."""


class InvalidNotifierError(TypeError):
    """Notificador registrado sem callable nem configuração."""


class NotifierRegistry:
    """
    Notificadores nomeados, compartilhados pelo processo.
    A iteração segue a ordem de registro; leituras devolvem cópias.
    """

    def __init__(self, notifier_types: Optional[Mapping] = None):
        self.notifier_types = dict(NOTIFIER_TYPES if notifier_types is None else notifier_types)
        self._lock = threading.Lock()
        self._notifiers: Dict[str, Callable] = {}

    def register(self, name: str, notifier_or_config) -> Callable:
        if callable(notifier_or_config):
            notifier = notifier_or_config
        elif isinstance(notifier_or_config, Mapping):
            notifier = self._build(name, notifier_or_config)
        else:
            raise InvalidNotifierError(f"Notificador inválido '{name}' definido como {notifier_or_config!r}")

        with self._lock:
            self._notifiers[name] = notifier
        logger.debug(f"Notificador '{name}' registrado")
        return notifier

    def _build(self, name: str, config: Mapping) -> Callable:
        config = dict(config)
        type_name = config.pop('type', name)
        constructor = self.notifier_types.get(type_name)
        if constructor is None:
            raise UndefinedNotifierError(
                f"Nenhum notificador do tipo '{type_name}' foi encontrado para '{name}'. "
                f"Revise a configuração; tipos disponíveis: {', '.join(sorted(self.notifier_types))}"
            )
        return constructor(**config)

    def unregister(self, name: str) -> Optional[Callable]:
        with self._lock:
            return self._notifiers.pop(name, None)

    def lookup(self, name: str) -> Optional[Callable]:
        with self._lock:
            return self._notifiers.get(name)

    def list_names(self) -> List[str]:
        with self._lock:
            return list(self._notifiers)

    def snapshot(self) -> Dict[str, Callable]:
        with self._lock:
            return dict(self._notifiers)

    def clear(self):
        with self._lock:
            self._notifiers.clear()

    def __contains__(self, name):
        with self._lock:
            return name in self._notifiers
