import logging
import smtplib
from email.mime.text import MIMEText
from typing import Dict, List, Optional

import requests

from .constants import (
    BACKTRACE_LINES,
    DISCORD_COLOR,
    DISCORD_USERNAME,
    EMAIL_PREFIX,
    EMAIL_SENDER,
    NOTIFIER_TIMEOUT_SECONDS,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
)
from .formatters import backtrace_lines, build_summary, format_discord_embed, format_text_message
from .record import ExceptionRecord

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Falha ao entregar uma notificação."""


class BaseNotifier:
    """
    Notificador concreto: recebe (registro, opções) e entrega a notificação.
    Subclasses implementam send(); falhas de entrega levantam NotificationError.
    """

    def __init__(self, backtrace_lines: Optional[int] = BACKTRACE_LINES):
        self.backtrace_lines = backtrace_lines

    def send(self, record: ExceptionRecord, options: Dict) -> bool:
        raise NotImplementedError

    def __call__(self, record: ExceptionRecord, options: Optional[Dict] = None) -> bool:
        return self.send(record, options or {})


class LogNotifier(BaseNotifier):
    """Canal base: registra a exceção no log da aplicação."""

    def __init__(self, logger_name: str = 'exception_notifier.notifications', level: int = logging.ERROR, **kwargs):
        super().__init__(**kwargs)
        self.logger = logging.getLogger(logger_name)
        self.level = level

    def send(self, record, options):
        self.logger.log(self.level, format_text_message(record, options, self.backtrace_lines))
        return True


def post_json(url: str, payload: Dict, timeout: float = NOTIFIER_TIMEOUT_SECONDS, headers: Optional[Dict] = None):
    try:
        resp = requests.post(url, json=payload, timeout=timeout, headers=headers)
    except requests.exceptions.RequestException as e:
        raise NotificationError(f"Falha ao enviar para {url}: {e}") from e

    logger.debug(f"Resposta de {url}: {resp.status_code}")
    if resp.status_code >= 400:
        raise NotificationError(f"{url} respondeu {resp.status_code}: {resp.text[:200]}")
    return resp


class WebhookNotifier(BaseNotifier):
    """Envia o resumo da exceção como JSON para uma URL arbitrária."""

    def __init__(self, url: str, headers: Optional[Dict] = None, timeout: float = NOTIFIER_TIMEOUT_SECONDS, **kwargs):
        super().__init__(**kwargs)
        if not url:
            raise ValueError("WebhookNotifier requer 'url'")
        self.url = url
        self.headers = headers
        self.timeout = timeout

    def send(self, record, options):
        payload = build_summary(record, options)
        payload['backtrace'] = backtrace_lines(record, self.backtrace_lines)
        post_json(self.url, payload, timeout=self.timeout, headers=self.headers)
        return True


class DiscordNotifier(BaseNotifier):
    def __init__(self, webhook_url: str, username: str = DISCORD_USERNAME, color: int = DISCORD_COLOR,
                 timeout: float = NOTIFIER_TIMEOUT_SECONDS, **kwargs):
        super().__init__(**kwargs)
        if not webhook_url:
            raise ValueError("DiscordNotifier requer 'webhook_url'")
        self.webhook_url = webhook_url
        self.username = username
        self.color = color
        self.timeout = timeout

    def send(self, record, options):
        payload = {
            "username": self.username,
            "embeds": [format_discord_embed(record, options, self.color, self.backtrace_lines)],
        }
        post_json(self.webhook_url, payload, timeout=self.timeout)
        return True


class EmailNotifier(BaseNotifier):
    def __init__(self, recipients: List[str], sender: str = EMAIL_SENDER, prefix: str = EMAIL_PREFIX,
                 smtp_host: str = SMTP_HOST, smtp_port: int = SMTP_PORT,
                 smtp_username: Optional[str] = SMTP_USERNAME, smtp_password: Optional[str] = SMTP_PASSWORD,
                 use_tls: bool = SMTP_USE_TLS, timeout: float = NOTIFIER_TIMEOUT_SECONDS, **kwargs):
        super().__init__(**kwargs)
        if isinstance(recipients, str):
            recipients = [r.strip() for r in recipients.split(',') if r.strip()]
        if not recipients:
            raise ValueError("EmailNotifier requer ao menos um destinatário")
        self.recipients = list(recipients)
        self.sender = sender
        self.prefix = prefix
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, record, options) -> MIMEText:
        summary = build_summary(record, options)
        msg = MIMEText(format_text_message(record, options, self.backtrace_lines), 'plain', 'utf-8')
        msg['Subject'] = f"{self.prefix}{summary['title']}"[:200]
        msg['From'] = self.sender
        msg['To'] = ', '.join(self.recipients)
        return msg

    def send(self, record, options):
        msg = self.build_message(record, options)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_username and self.smtp_password:
                    server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.sender, self.recipients, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Falha ao enviar email para {', '.join(self.recipients)}: {e}") from e
        return True


# Tabela tipo -> construtor usada ao registrar notificadores por configuração
NOTIFIER_TYPES = {
    'log': LogNotifier,
    'webhook': WebhookNotifier,
    'discord': DiscordNotifier,
    'email': EmailNotifier,
}
