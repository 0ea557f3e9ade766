from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any

CONNECTION_ERROR = "CONNECTION_ERROR"
INVALID_RESPONSE = "INVALID_RESPONSE"
MAX_RETRIES_EXCEEDED = "MAX_RETRIES_EXCEEDED"
UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(slots=True, eq=False)
class SupaFlowError(RuntimeError):
    """Error base de la librería."""

    message: str
    code: str = UNKNOWN_ERROR
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict[str, Any]:
        """Convierte el error a dict para logging estructurado."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


@dataclass(slots=True, eq=False)
class SupaFlowConnectionError(SupaFlowError):
    """
    El stream no pudo establecerse.

    Se levanta cuando el servidor responde con un status fuera de 2xx o cuando
    el transporte falla antes de obtener la respuesta (status_code=None).

    Si el backend retorna un error JSON con formato:
    {
        "error": {
            "code": "UNAUTHORIZED",
            "message": "...",
            "requestId": "req_..."
        }
    }
    los campos estructurados se parsean automáticamente.
    """

    code: str = CONNECTION_ERROR
    status_code: int | None = None
    reason: str | None = None
    body: str | None = None

    error_code: str | None = None
    request_id: str | None = None

    def __str__(self) -> str:
        parts = [f"SupaFlowConnectionError(status_code={self.status_code}"]
        if self.error_code:
            parts.append(f", code={self.error_code!r}")
        parts.append(f", message={self.message!r}")
        if self.request_id:
            parts.append(f", request_id={self.request_id!r}")
        if self.body:
            parts.append(f", body={len(self.body)} chars")
        parts.append(")")
        return "".join(parts)

    def __repr__(self) -> str:
        return (
            f"SupaFlowConnectionError("
            f"status_code={self.status_code}, "
            f"message={self.message!r}, "
            f"reason={self.reason!r}, "
            f"error_code={self.error_code!r}, "
            f"request_id={self.request_id!r}, "
            f"body={'...' if self.body else None})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code,
            "reason": self.reason,
            "error_code": self.error_code,
            "request_id": self.request_id,
            "body": self.body,
        }

    @property
    def is_transport_error(self) -> bool:
        """True si la conexión falló antes de recibir un status HTTP."""
        return self.status_code is None

    @property
    def is_client_error(self) -> bool:
        """True si es un error 4xx (problema del cliente)."""
        return self.status_code is not None and 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        """True si es un error 5xx (problema del servidor)."""
        return self.status_code is not None and 500 <= self.status_code < 600

    @property
    def is_auth_error(self) -> bool:
        """True si es un error de autenticación (401) o autorización (403)."""
        return self.status_code in (401, 403)


@dataclass(slots=True, eq=False)
class InvalidResponseError(SupaFlowError):
    """Respuesta 2xx sin un body legible."""

    code: str = INVALID_RESPONSE


@dataclass(slots=True, eq=False)
class MaxRetriesExceededError(SupaFlowError):
    """Se agotó el presupuesto de reintentos."""

    code: str = MAX_RETRIES_EXCEEDED
    retry_count: int = 0


@dataclass(slots=True, eq=False)
class UnknownStreamError(SupaFlowError):
    """Cualquier otro fallo del read loop cuando auto_reconnect está desactivado."""

    code: str = UNKNOWN_ERROR
    original_error: BaseException | None = field(default=None, repr=False)
