import traceback
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


def qualified_name(exc_class) -> str:
    """Nome completo da classe (``modulo.Classe``); builtins usam só o nome."""
    module = getattr(exc_class, '__module__', None)
    name = getattr(exc_class, '__qualname__', None) or exc_class.__name__
    if not module or module == 'builtins':
        return name
    return f"{module}.{name}"


def format_backtrace(tb) -> Optional[Tuple[str, ...]]:
    if tb is None:
        return None
    frames = traceback.extract_tb(tb)
    # Frame mais interno (onde a exceção foi levantada) primeiro
    return tuple(f"{f.filename}:{f.lineno}:in `{f.name}`" for f in reversed(frames))


@dataclass(frozen=True)
class ExceptionRecord:
    type_name: str
    message: str
    backtrace: Optional[Tuple[str, ...]] = None
    exception: Optional[BaseException] = field(default=None, compare=False, repr=False)

    @property
    def first_frame(self) -> str:
        if not self.backtrace:
            return ''
        return self.backtrace[0] or ''

    @classmethod
    def from_exception(cls, exc: BaseException) -> 'ExceptionRecord':
        return cls(
            type_name=qualified_name(type(exc)),
            message=str(exc),
            backtrace=format_backtrace(exc.__traceback__),
            exception=exc,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExceptionRecord':
        """
        Constrói o registro a partir de um payload JSON recebido de outro serviço.
        Espera 'type_name' (obrigatório), 'message' e 'backtrace' (lista de strings).
        """
        type_name = str(data.get('type_name') or '').strip()
        if not type_name:
            raise ValueError("campo 'type_name' é obrigatório")
        backtrace = data.get('backtrace')
        if backtrace is not None:
            if isinstance(backtrace, str):
                backtrace = backtrace.splitlines()
            elif not isinstance(backtrace, (list, tuple)):
                raise ValueError("campo 'backtrace' deve ser texto ou lista de strings")
            backtrace = tuple(str(line) for line in backtrace)
        return cls(type_name=type_name, message=str(data.get('message') or ''), backtrace=backtrace)


def to_record(exception) -> ExceptionRecord:
    if isinstance(exception, ExceptionRecord):
        return exception
    if isinstance(exception, BaseException):
        return ExceptionRecord.from_exception(exception)
    raise TypeError(f"Esperado exceção ou ExceptionRecord, recebido {type(exception).__name__}")
