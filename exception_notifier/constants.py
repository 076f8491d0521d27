import os


def _env_list(name, default=""):
    raw = os.getenv(name, default).strip()
    return [s.strip() for s in raw.split(",") if s.strip()]


# Configurações globais de ambiente
APP_PORT = int(os.getenv("APP_PORT", "5001"))
DEBUG_MODE = os.getenv("DEBUG_MODE", "False").lower() == "true"

# Em modo de teste, falhas de predicados e notificadores são propagadas
TESTING_MODE = os.getenv("TESTING_MODE", "false").lower() == "true"

# Exceções que nunca geram notificação (equivalentes a "not found"/roteamento)
DEFAULT_IGNORED_EXCEPTIONS = [
    "werkzeug.exceptions.NotFound",
    "werkzeug.exceptions.MethodNotAllowed",
    "werkzeug.exceptions.NotAcceptable",
    "werkzeug.routing.exceptions.RequestRedirect",
]
# Variável vazia limpa a lista; ausente usa o padrão
IGNORED_EXCEPTIONS = (
    list(DEFAULT_IGNORED_EXCEPTIONS) if os.getenv("IGNORED_EXCEPTIONS") is None else _env_list("IGNORED_EXCEPTIONS")
)

# Agrupamento de erros repetidos
ERROR_GROUPING_ENABLED = os.getenv("ERROR_GROUPING_ENABLED", "false").lower() == "true"
ERROR_GROUPING_PERIOD_SECONDS = int(os.getenv("ERROR_GROUPING_PERIOD_SECONDS", "300"))  # 5 minutos por padrão
ERROR_GROUPING_CACHE_MAX = int(os.getenv("ERROR_GROUPING_CACHE_MAX", "5000"))

# User-agents (regex) de crawlers cujas requisições não notificam
IGNORE_CRAWLERS = _env_list("IGNORE_CRAWLERS")

# Notificadores
NOTIFIER_TIMEOUT_SECONDS = int(os.getenv("NOTIFIER_TIMEOUT_SECONDS", "5"))
BACKTRACE_LINES = int(os.getenv("BACKTRACE_LINES", "10"))

DISCORD_WEBHOOK_URL = os.getenv("DISCORD_WEBHOOK_URL")
DISCORD_USERNAME = os.getenv("DISCORD_USERNAME", "Exception Notifier")
DISCORD_COLOR = int(os.getenv("DISCORD_COLOR", "16711680"))

WEBHOOK_URL = os.getenv("WEBHOOK_URL")

EMAIL_RECIPIENTS = _env_list("EMAIL_RECIPIENTS")
EMAIL_SENDER = os.getenv("EMAIL_SENDER", "exception-notifier@localhost")
EMAIL_PREFIX = os.getenv("EMAIL_PREFIX", "[ERROR] ")
SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
SMTP_PORT = int(os.getenv("SMTP_PORT", "25"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "false").lower() == "true"
