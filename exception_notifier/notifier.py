import logging
from typing import Callable, Dict, Iterable, List, Optional

from .constants import (
    DISCORD_WEBHOOK_URL,
    EMAIL_RECIPIENTS,
    ERROR_GROUPING_CACHE_MAX,
    ERROR_GROUPING_ENABLED,
    ERROR_GROUPING_PERIOD_SECONDS,
    IGNORED_EXCEPTIONS,
    TESTING_MODE,
    WEBHOOK_URL,
)
from .dedupe import TTLCounterStore
from .grouping import ErrorGrouper
from .ignore import IgnoreEvaluator, normalize_exception_names
from .record import ExceptionRecord, to_record
from .registry import NotifierRegistry
from .services import LogNotifier

logger = logging.getLogger(__name__)


class ExceptionNotifier:
    """
    Estado compartilhado do processo e orquestração das notificações.

    Fluxo de notify(), que grava 'accumulated_errors_count' nas opções recebidas:
    1. tipo ignorado ou condição de ignore -> False
    2. agrupamento habilitado e ocorrência suprimida -> False
    3. chama cada notificador selecionado (ou todos), isolando falhas -> True

    testing_mode é fixado na construção: quando ativo, falhas de predicados e
    notificadores são propagadas em vez de apenas logadas.
    """

    def __init__(self, store=None, ignored_exceptions: Optional[Iterable] = None,
                 grouping_error: bool = ERROR_GROUPING_ENABLED,
                 grouping_error_period: float = ERROR_GROUPING_PERIOD_SECONDS,
                 send_grouped_error_trigger: Optional[Callable[[int], bool]] = None,
                 testing_mode: bool = TESTING_MODE, notifier_types=None,
                 register_default: bool = True):
        self.testing_mode = testing_mode
        self.grouping_error = grouping_error
        self.store = store if store is not None else TTLCounterStore(max_size=ERROR_GROUPING_CACHE_MAX)
        self.grouper = ErrorGrouper(self.store, grouping_error_period, send_grouped_error_trigger)
        self.ignores = IgnoreEvaluator(
            IGNORED_EXCEPTIONS if ignored_exceptions is None else ignored_exceptions,
            testing_mode=testing_mode,
        )
        self.registry = NotifierRegistry(notifier_types)
        self.register_default = register_default
        if register_default:
            self.registry.register('log', LogNotifier())

    @classmethod
    def from_env(cls, **kwargs) -> 'ExceptionNotifier':
        """Cria o notificador e registra os canais configurados por variáveis de ambiente."""
        notifier = cls(**kwargs)
        if DISCORD_WEBHOOK_URL:
            notifier.register('discord', {'webhook_url': DISCORD_WEBHOOK_URL})
        if WEBHOOK_URL:
            notifier.register('webhook', {'url': WEBHOOK_URL})
        if EMAIL_RECIPIENTS:
            notifier.register('email', {'recipients': EMAIL_RECIPIENTS})
        logger.info(f"Notificadores ativos: {', '.join(notifier.notifiers) or 'nenhum'}")
        return notifier

    # Configuração

    @property
    def ignored_exceptions(self) -> List[str]:
        return self.ignores.ignored_exceptions

    @ignored_exceptions.setter
    def ignored_exceptions(self, values):
        self.ignores.ignored_exceptions = normalize_exception_names(values)

    @property
    def grouping_error_period(self) -> float:
        return self.grouper.period

    @grouping_error_period.setter
    def grouping_error_period(self, seconds: float):
        self.grouper.period = seconds

    @property
    def send_grouped_error_trigger(self) -> Optional[Callable[[int], bool]]:
        return self.grouper.trigger

    @send_grouped_error_trigger.setter
    def send_grouped_error_trigger(self, trigger):
        self.grouper.trigger = trigger

    # Registro de notificadores e condições

    def register(self, name: str, notifier_or_config) -> Callable:
        return self.registry.register(name, notifier_or_config)

    def unregister(self, name: str) -> Optional[Callable]:
        return self.registry.unregister(name)

    def registered_notifier(self, name: str) -> Optional[Callable]:
        return self.registry.lookup(name)

    @property
    def notifiers(self) -> List[str]:
        return self.registry.list_names()

    def ignore_if(self, predicate):
        """
        Adiciona uma condição de ignore; pode ser usado como decorator:

            @notifier.ignore_if
            def not_production(record, options):
                return os.getenv('ENV') != 'production'
        """
        return self.ignores.ignore_if(predicate)

    def clear_ignore_conditions(self):
        self.ignores.clear_ignore_conditions()

    def reset(self):
        """Volta ao estado inicial (usado entre testes)."""
        self.ignores.clear_ignore_conditions()
        self.registry.clear()
        if self.register_default:
            self.registry.register('log', LogNotifier())
        clear = getattr(self.store, 'clear', None)
        if callable(clear):
            clear()

    # Notificação

    def notify(self, exception, options: Optional[Dict] = None) -> bool:
        record = to_record(exception)
        if options is None:
            options = {}

        if self.ignores.is_ignored(record, options):
            return False
        if self.grouping_error and self._suppressed(record, options):
            return False

        notifier_options = {k: v for k, v in options.items() if k != 'notifiers'}
        for name in self._select(options.get('notifiers')):
            self._fire(name, record, dict(notifier_options))
        return True

    def _suppressed(self, record: ExceptionRecord, options: Dict) -> bool:
        try:
            return self.grouper.should_suppress(record, options)
        except Exception:
            if self.testing_mode:
                raise
            # Store indisponível: notifica mesmo assim
            logger.warning("Erro ao consultar agrupamento de erros; notificação não será suprimida", exc_info=True)
            return False

    def _select(self, selected) -> List[str]:
        if selected is None:
            return self.registry.list_names()
        if isinstance(selected, str):
            return [selected]
        try:
            return list(selected)
        except TypeError:
            if self.testing_mode:
                raise
            logger.warning(f"Seletor de notificadores inválido: {selected!r}; nenhuma notificação enviada")
            return []

    def _fire(self, name: str, record: ExceptionRecord, options: Dict) -> bool:
        try:
            notifier = self.registry.lookup(name)
            if notifier is None:
                raise LookupError(f"Notificador '{name}' não está registrado")
            notifier(record, options)
            return True
        except Exception:
            if self.testing_mode:
                raise
            logger.warning(f"Erro ao enviar notificação pelo notificador '{name}'", exc_info=True)
            return False
