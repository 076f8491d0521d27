"""Middleware de notificação de exceções com agrupamento de erros repetidos.

Este pacote contém:
- constants: variáveis de ambiente e configuração padrão
- record: captura da exceção (tipo, mensagem, backtrace)
- ignore: regras de ignore (tipos ignorados e condições)
- dedupe: store em memória de contadores com TTL
- grouping: agrupamento de erros e política de notificação
- registry: registro de notificadores nomeados
- notifier: orquestração (ignore -> agrupamento -> envio)
- services: notificadores concretos (log, webhook, Discord, email)
- formatters: montagem das mensagens enviadas
- middleware: middleware WSGI e extensão Flask
- controller: criação do Flask app e endpoints
"""
from .notifier import ExceptionNotifier
from .record import ExceptionRecord
from .registry import InvalidNotifierError, UndefinedNotifierError
from .services import BaseNotifier, NotificationError

__all__ = [
    'BaseNotifier',
    'ExceptionNotifier',
    'ExceptionRecord',
    'InvalidNotifierError',
    'NotificationError',
    'UndefinedNotifierError',
]
