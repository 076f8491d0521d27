import logging
import re
from typing import Callable, Dict, Iterable, Optional

from flask import got_request_exception, request

from .notifier import ExceptionNotifier

logger = logging.getLogger(__name__)

DELIVERED_ENV_KEY = 'exception_notifier.delivered'


def from_crawler(env: Dict, ignored_crawlers: Iterable[str]) -> bool:
    agent = env.get('HTTP_USER_AGENT') or ''
    return any(re.search(crawler, agent) for crawler in ignored_crawlers)


class CrawlerIgnore:
    """Condição de ignore para requisições feitas por crawlers (regex no User-Agent)."""

    def __init__(self, crawlers: Iterable[str]):
        self.crawlers = list(crawlers)

    def __call__(self, record, opts) -> bool:
        return 'env' in opts and from_crawler(opts['env'], list(self.crawlers))


def configure_notifier(notifier: ExceptionNotifier, ignore_exceptions=None, grouping_error: Optional[bool] = None,
                       send_grouped_error_trigger: Optional[Callable[[int], bool]] = None,
                       ignore_if: Optional[Callable] = None, ignore_crawlers: Optional[Iterable[str]] = None,
                       notifiers: Optional[Dict] = None) -> ExceptionNotifier:
    """
    Aplica no notificador as opções aceitas pelo middleware.
    ignore_if recebe (environ, ExceptionRecord) e só vale para notificações feitas a partir de uma requisição.
    notifiers mapeia nome -> callable ou configuração.
    """
    if ignore_exceptions is not None:
        notifier.ignored_exceptions = ignore_exceptions
    if grouping_error is not None:
        notifier.grouping_error = grouping_error
    if send_grouped_error_trigger is not None:
        notifier.send_grouped_error_trigger = send_grouped_error_trigger

    if ignore_if is not None:
        def request_ignore(record, opts):
            return 'env' in opts and bool(ignore_if(opts['env'], record))
        notifier.ignore_if(request_ignore)

    if ignore_crawlers:
        crawlers = [ignore_crawlers] if isinstance(ignore_crawlers, str) else list(ignore_crawlers)
        # Uma única condição de crawlers por notificador, mesmo com várias configurações
        current = next((p for p in notifier.ignores.predicates if isinstance(p, CrawlerIgnore)), None)
        if current is None:
            notifier.ignore_if(CrawlerIgnore(crawlers))
        else:
            current.crawlers.extend(c for c in crawlers if c not in current.crawlers)

    for name, notifier_or_config in (notifiers or {}).items():
        notifier.register(name, notifier_or_config)
    return notifier


class ExceptionNotificationMiddleware:
    """
    Middleware WSGI: notifica exceções não tratadas da aplicação e as propaga.
    Quando a notificação é entregue, marca environ['exception_notifier.delivered'].
    """

    def __init__(self, app, notifier: Optional[ExceptionNotifier] = None, **options):
        self.app = app
        self.notifier = notifier if notifier is not None else ExceptionNotifier.from_env()
        configure_notifier(self.notifier, **options)

    def __call__(self, environ, start_response):
        try:
            return self.app(environ, start_response)
        except Exception as exc:
            if self.notifier.notify(exc, {'env': environ}):
                environ[DELIVERED_ENV_KEY] = True
            raise


class ExceptionNotification:
    """
    Extensão Flask. Usa o sinal got_request_exception, que o Flask emite antes de
    transformar a exceção em resposta 500:

        notification = ExceptionNotification(app, grouping_error=True)
    """

    def __init__(self, app=None, notifier: Optional[ExceptionNotifier] = None, **options):
        self.notifier = notifier if notifier is not None else ExceptionNotifier.from_env()
        configure_notifier(self.notifier, **options)
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.extensions['exception_notifier'] = self.notifier
        got_request_exception.connect(self._on_exception, app, weak=False)

    def _on_exception(self, sender, exception=None, **extra):
        if exception is None:
            return
        environ = request.environ
        if self.notifier.notify(exception, {'env': environ}):
            environ[DELIVERED_ENV_KEY] = True
            logger.debug(f"Exceção {type(exception).__name__} notificada ({request.method} {request.path})")
