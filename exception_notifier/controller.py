import logging
from typing import Optional

from flask import Flask, request

from .constants import IGNORE_CRAWLERS
from .middleware import ExceptionNotification
from .notifier import ExceptionNotifier
from .record import ExceptionRecord

logger = logging.getLogger(__name__)


def create_app(notifier: Optional[ExceptionNotifier] = None):
    app = Flask(__name__)
    # Estado compartilhado do processo (notificadores, condições de ignore, contadores)
    notifier = notifier if notifier is not None else ExceptionNotifier.from_env()
    ExceptionNotification(app, notifier=notifier, ignore_crawlers=IGNORE_CRAWLERS)

    @app.route('/health', methods=['GET'])
    def health():
        return {'status': 'ok', 'service': 'exception-notifier', 'notifiers': notifier.notifiers}, 200

    @app.route('/notify', methods=['POST'])
    def notify():
        """
        Recebe exceções reportadas por outros serviços:
        {"type_name": "...", "message": "...", "backtrace": [...], "notifiers": [...], "data": {...}}
        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return {'error': 'payload JSON inválido'}, 400

        try:
            record = ExceptionRecord.from_dict(data)
        except ValueError as e:
            return {'error': str(e)}, 400

        selected = data.get('notifiers')
        if selected and not (isinstance(selected, str) or
                             (isinstance(selected, list) and all(isinstance(n, str) for n in selected))):
            return {'error': "campo 'notifiers' deve ser texto ou lista de strings"}, 400

        extra = data.get('data')
        # 'env' fica de fora: a requisição original aconteceu no serviço que reportou
        options = {'collector_env': request.environ, 'data': extra if isinstance(extra, dict) else {}}
        if data.get('notifiers'):
            options['notifiers'] = data['notifiers']

        notified = notifier.notify(record, options)
        logger.debug(f"Exceção recebida: {record.type_name} notified={notified}")
        return {
            'notified': notified,
            'accumulated_errors_count': options.get('accumulated_errors_count'),
        }, 200

    return app
