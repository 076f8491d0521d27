import logging
import zlib
from typing import Callable, Dict, Optional

from .constants import ERROR_GROUPING_PERIOD_SECONDS
from .record import ExceptionRecord

logger = logging.getLogger(__name__)


def _crc_key(text: str) -> str:
    return f"exception:{zlib.crc32(text.encode('utf-8'))}"


def build_backtrace_key(record: ExceptionRecord) -> str:
    return _crc_key(f"{record.type_name}\npath:{record.first_frame}")


def build_message_key(record: ExceptionRecord) -> str:
    return _crc_key(f"{record.type_name}\nmessage:{record.message}")


def send_notification(count: int) -> bool:
    """
    Política padrão: notifica nas ocorrências 1, 3, 6, 9, 10, 100, 1000, ... 10**n.
    """
    if count == 1:
        return True
    if count < 10:
        return count % 3 == 0
    while count % 10 == 0:
        count //= 10
    return count == 1


class ErrorGrouper:
    """
    Agrupa exceções repetidas e decide quais ocorrências notificam.

    Cada exceção gera duas chaves: uma por (tipo, primeiro frame do backtrace) e outra
    por (tipo, mensagem). Um contador existente em qualquer uma delas conta como repetição.
    Em grupo novo, as duas chaves são inicializadas com 1.
    """

    def __init__(self, store, period_seconds: float = ERROR_GROUPING_PERIOD_SECONDS,
                 trigger: Optional[Callable[[int], bool]] = None):
        self.store = store
        self.period = period_seconds
        self.trigger = trigger

    def accumulate(self, record: ExceptionRecord) -> int:
        backtrace_key = build_backtrace_key(record)
        message_key = build_message_key(record)

        accumulated_errors_count = 1
        count = self.store.read(message_key)
        if count is not None:
            accumulated_errors_count = count + 1
            self.store.write(message_key, accumulated_errors_count, self.period)
            return accumulated_errors_count

        count = self.store.read(backtrace_key)
        if count is not None:
            accumulated_errors_count = count + 1
            self.store.write(backtrace_key, accumulated_errors_count, self.period)
            return accumulated_errors_count

        # grupo novo
        self.store.write(backtrace_key, accumulated_errors_count, self.period)
        self.store.write(message_key, accumulated_errors_count, self.period)
        return accumulated_errors_count

    def should_notify(self, count: int) -> bool:
        if callable(self.trigger):
            return bool(self.trigger(count))
        return send_notification(count)

    def should_suppress(self, record: ExceptionRecord, options: Dict) -> bool:
        count = self.accumulate(record)
        options['accumulated_errors_count'] = count
        suppress = not self.should_notify(count)
        if suppress:
            logger.debug(f"Suprimindo {record.type_name} (ocorrência {count} do grupo)")
        return suppress
