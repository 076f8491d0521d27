import socket
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .record import ExceptionRecord


def truncate(text: str, limit: int) -> str:
    if text is None:
        return ''
    text = str(text)
    if len(text) <= limit:
        return text
    return text[: max(limit - 3, 0)] + '...'


def backtrace_lines(record: ExceptionRecord, max_lines: Optional[int] = None) -> List[str]:
    if not record.backtrace:
        return []
    lines = list(record.backtrace)
    if max_lines is not None:
        lines = lines[:max_lines]
    return lines


def request_summary(options: Dict) -> Optional[str]:
    env = options.get('env')
    if not env:
        return None
    method = env.get('REQUEST_METHOD', '')
    path = env.get('PATH_INFO', '')
    query = env.get('QUERY_STRING')
    if query:
        path = f"{path}?{query}"
    return f"{method} {path}".strip() or None


def build_summary(record: ExceptionRecord, options: Dict) -> Dict:
    """Campos comuns usados por todos os notificadores."""
    count = options.get('accumulated_errors_count')
    title = f"{record.type_name}: {record.message}" if record.message else record.type_name
    if count and count > 1:
        title = f"({count} vezes) {title}"
    return {
        'title': title,
        'type_name': record.type_name,
        'message': record.message,
        'host': socket.gethostname(),
        'request': request_summary(options),
        'accumulated_errors_count': count,
        'data': options.get('data') or {},
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }


def format_text_message(record: ExceptionRecord, options: Dict, max_lines: Optional[int] = None) -> str:
    summary = build_summary(record, options)
    lines = [
        f"🚨 **{summary['title']}**",
        "",
        f"**Servidor:** `{summary['host']}`",
    ]
    if summary['request']:
        lines.append(f"**Requisição:** `{summary['request']}`")
    for key, value in summary['data'].items():
        lines.append(f"**{key}:** `{value}`")

    trace = backtrace_lines(record, max_lines)
    if trace:
        lines.extend(["", "**Backtrace:**", "```", *trace, "```"])
    return "\n".join(lines)


def format_discord_embed(record: ExceptionRecord, options: Dict, color: int,
                         max_lines: Optional[int] = None) -> Dict:
    summary = build_summary(record, options)
    fields = [{"name": "🖥️ Servidor", "value": f"`{summary['host']}`", "inline": True}]
    if summary['request']:
        fields.append({"name": "🌐 Requisição", "value": f"`{summary['request']}`", "inline": True})
    if summary['accumulated_errors_count']:
        fields.append({"name": "🔁 Ocorrências", "value": str(summary['accumulated_errors_count']), "inline": True})

    trace = backtrace_lines(record, max_lines)
    if trace:
        # Discord limita o valor de cada field a 1024 caracteres
        fields.append({"name": "📚 Backtrace", "value": truncate("```\n" + "\n".join(trace) + "\n```", 1024), "inline": False})

    return {
        "title": truncate(summary['title'], 256),
        "description": truncate(record.message, 4096) if record.message else None,
        "color": color,
        "fields": fields,
        "timestamp": summary['timestamp'],
    }
