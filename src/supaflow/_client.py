from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import httpx

from supaflow._errors import InvalidResponseError, SupaFlowConnectionError
from supaflow.options import RequestOptions

ENV_HTTP_DEBUG = "SUPAFLOW_HTTP_DEBUG"
EVENT_STREAM = "text/event-stream"
_EMPTY_BODY_STATUSES = frozenset({204, 205})


@dataclass(frozen=True, slots=True)
class HttpConfig:
    timeout_s: float | None = None
    connect_timeout_s: float = 10.0

    @staticmethod
    def from_request(request: RequestOptions) -> HttpConfig:
        return HttpConfig(timeout_s=request.timeout_s, connect_timeout_s=request.connect_timeout_s)


def _parse_error_response(
    status_code: int,
    body_text: str,
    content_type: str,
    reason: str | None = None,
) -> SupaFlowConnectionError:
    """
    Parsea una respuesta de error del servidor.

    Si el body no es JSON o no tiene un envelope reconocible, el mensaje es el
    texto del body (o "status reason") y los campos estructurados quedan en None.
    """
    message = f"Failed to connect: {status_code} {reason or ''}".strip()
    error_code: str | None = None
    request_id: str | None = None
    details: dict[str, Any] = {"status": status_code}

    def build() -> SupaFlowConnectionError:
        return SupaFlowConnectionError(
            message=message,
            details=details,
            status_code=status_code,
            reason=reason,
            body=body_text or None,
            error_code=error_code,
            request_id=request_id,
        )

    # Solo parsear JSON si Content-Type lo indica
    if "application/json" not in content_type.lower():
        if body_text and body_text.strip():
            message = body_text.strip()
        return build()

    try:
        data = json.loads(body_text) if body_text else {}
    except (json.JSONDecodeError, ValueError):
        if body_text and body_text.strip():
            message = body_text.strip()
        return build()

    if not isinstance(data, dict):
        if data:
            message = str(data)
        return build()

    # Envelope: { "error": { "code": ..., "message": ..., "requestId": ... } } o { "message": ... }
    error_obj = data.get("error")

    if isinstance(error_obj, dict):
        code = error_obj.get("code")
        if isinstance(code, str) and code.strip():
            error_code = code.strip()

        msg = error_obj.get("message")
        if isinstance(msg, str) and msg.strip():
            message = msg.strip()

        req_id = error_obj.get("requestId")
        if isinstance(req_id, str) and req_id.strip():
            request_id = req_id.strip()

        det = error_obj.get("details")
        if isinstance(det, dict):
            details.update(det)
    else:
        if isinstance(error_obj, str) and error_obj.strip():
            message = error_obj.strip()
        msg = data.get("message")
        if isinstance(msg, str) and msg.strip():
            message = msg.strip()

    return build()


def _redact_headers(headers: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(headers)
    for k in ("authorization", "Authorization"):
        if k in out:
            out[k] = "Bearer ***REDACTED***"
    return out


class SupaFlowHttpClient:
    """
    Wrapper HTTPX ligero para streams text/event-stream:
    - Abre la respuesta en modo streaming (send(..., stream=True))
    - Traduce status/transport errors a errores estructurados
    - Debug logging opcional via SUPAFLOW_HTTP_DEBUG
    """

    def __init__(
        self,
        *,
        config: HttpConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or HttpConfig()
        self._debug_http = os.getenv(ENV_HTTP_DEBUG, "").lower() in {"1", "true", "yes", "on"}

        async def _log_request(request: httpx.Request) -> None:
            if not self._debug_http:
                return
            logging.warning("HTTPX REQUEST %s %s", request.method, request.url)
            logging.warning("HTTPX REQUEST headers=%s", _redact_headers(request.headers))
            if request.content:
                try:
                    logging.warning("HTTPX REQUEST body=%s", request.content.decode("utf-8", "ignore"))
                except Exception:
                    logging.warning("HTTPX REQUEST body=(binary) len=%s", len(request.content))

        async def _log_response(response: httpx.Response) -> None:
            if not self._debug_http:
                return
            req = response.request
            logging.warning("HTTPX RESPONSE %s %s -> %s", req.method, req.url, response.status_code)
            logging.warning("HTTPX RESPONSE headers=%s", dict(response.headers))
            # Los bodies event-stream nunca se leen aquí: consumirlos vaciaría el stream.
            logging.warning("HTTPX RESPONSE body=(streamed; not auto-logged)")

        EventHooksDict = dict[str, list[Callable[..., Any]]]
        hooks: EventHooksDict = {"request": [_log_request], "response": [_log_response]}

        timeout = httpx.Timeout(self._config.timeout_s, connect=self._config.connect_timeout_s)
        self._aclient = httpx.AsyncClient(timeout=timeout, event_hooks=hooks, transport=transport)

    async def aclose(self) -> None:
        await self._aclient.aclose()

    @staticmethod
    def _headers(*extras: Mapping[str, str] | None) -> httpx.Headers:
        headers = httpx.Headers({"Accept": EVENT_STREAM, "Cache-Control": "no-cache"})
        for extra in extras:
            if extra:
                # Headers.update replaces case-insensitively.
                headers.update(extra)
        return headers

    @staticmethod
    async def araise_for_status(resp: httpx.Response) -> None:
        """Verifica status y levanta SupaFlowConnectionError estructurado, cerrando la respuesta."""
        if 200 <= resp.status_code < 300:
            return

        body_text: str | None = None
        try:
            await resp.aread()
            body_text = resp.text
        except Exception:
            body_text = None
        finally:
            await resp.aclose()

        error = _parse_error_response(
            status_code=resp.status_code,
            body_text=body_text or "",
            content_type=resp.headers.get("content-type", ""),
            reason=getattr(resp, "reason_phrase", None) or None,
        )
        raise error

    @staticmethod
    def has_body(resp: httpx.Response) -> bool:
        if resp.status_code in _EMPTY_BODY_STATUSES:
            return False
        return resp.headers.get("content-length", "").strip() != "0"

    async def open_stream(
        self,
        url: str,
        *,
        request: RequestOptions,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """
        Envía la petición y retorna la respuesta abierta en modo streaming.

        El caller es dueño de la respuesta y debe cerrarla (``await resp.aclose()``).

        Raises:
            SupaFlowConnectionError: status fuera de 2xx o fallo de transporte.
            InvalidResponseError: respuesta 2xx sin body legible.
        """
        req = self._aclient.build_request(
            request.method,
            url,
            headers=self._headers(request.headers, headers),
            params=request.params,
            content=request.content,
            json=request.json_body,
        )
        try:
            resp = await self._aclient.send(req, stream=True)
        except httpx.TransportError as e:
            raise SupaFlowConnectionError(
                message=f"Failed to connect: {e!r}",
                details={"url": url},
            ) from e

        await self.araise_for_status(resp)

        if not self.has_body(resp):
            await resp.aclose()
            raise InvalidResponseError(
                message="Response body is null",
                details={"status": resp.status_code},
            )
        return resp
