import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional

from .constants import IGNORED_EXCEPTIONS
from .record import ExceptionRecord, qualified_name

logger = logging.getLogger(__name__)

IgnorePredicate = Callable[[ExceptionRecord, Dict], bool]


def normalize_exception_names(values) -> List[str]:
    """Aceita string, classe de exceção ou coleção delas; devolve nomes qualificados."""
    if values is None:
        return []
    if isinstance(values, (str, type)):
        values = [values]
    names = []
    for value in values:
        if isinstance(value, type):
            names.append(qualified_name(value))
        elif value:
            names.append(str(value))
    return names


class IgnoreEvaluator:
    """
    Decide se uma exceção nunca deve notificar.
    Regras (na ordem):
    - tipo presente na lista estática de ignorados ou no override 'ignore_exceptions' da chamada
    - qualquer predicado registrado retorna True (avaliados em ordem de registro)
    Predicado que levanta exceção é tratado como False, exceto em modo de teste.
    """

    def __init__(self, ignored_exceptions: Optional[Iterable] = None, testing_mode: bool = False):
        self.ignored_exceptions = normalize_exception_names(
            IGNORED_EXCEPTIONS if ignored_exceptions is None else ignored_exceptions
        )
        self.testing_mode = testing_mode
        self._lock = threading.Lock()
        self._predicates: List[IgnorePredicate] = []

    def ignore_if(self, predicate: IgnorePredicate) -> IgnorePredicate:
        with self._lock:
            self._predicates.append(predicate)
        return predicate

    def clear_ignore_conditions(self):
        with self._lock:
            self._predicates.clear()

    @property
    def predicates(self) -> List[IgnorePredicate]:
        with self._lock:
            return list(self._predicates)

    def is_ignored_type(self, record: ExceptionRecord, options: Dict) -> bool:
        names = set(self.ignored_exceptions)
        names.update(normalize_exception_names(options.get('ignore_exceptions')))
        return record.type_name in names

    def is_ignored_by_condition(self, record: ExceptionRecord, options: Dict) -> bool:
        for predicate in self.predicates:
            try:
                if predicate(record, options):
                    return True
            except Exception:
                if self.testing_mode:
                    raise
                logger.warning("Erro ao avaliar condição de ignore; exceção não será ignorada", exc_info=True)
                return False
        return False

    def is_ignored(self, record: ExceptionRecord, options: Dict) -> bool:
        if self.is_ignored_type(record, options):
            logger.debug(f"Exceção {record.type_name} está na lista de ignoradas")
            return True
        return self.is_ignored_by_condition(record, options)
