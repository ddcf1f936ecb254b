"""
Audit middleware — captures every inbound request and outbound response and
publishes both to the audit topic.

Per request:
  1. drain and cache the request body
  2. resolve path parameters and publish the request envelope
  3. run the app with a replayed body and a buffering `send`
  4. publish a response envelope if the app produced a non-empty body
  5. copy the buffered response to the client (always, exactly once)

Health and actuator traffic is passed through untouched. Failures while
auditing are logged and never change what the client sees.
"""

from typing import TYPE_CHECKING, Any, Callable

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers, QueryParams
from starlette.types import ASGIApp, Receive, Scope, Send

from http_audit.core.logging import get_logger
from http_audit.middleware.capture import CapturedRequest, CapturedResponse
from http_audit.models.audit import RequestAuditContext, ResponseAuditContext

if TYPE_CHECKING:
    from http_audit.core.assembly import AuditPipeline

logger = get_logger(__name__)

# Substring match anywhere in the path
EXCLUDED_PATH_FRAGMENTS = ("/health", "/actuator")


def is_excluded(path: str) -> bool:
    return any(fragment in path for fragment in EXCLUDED_PATH_FRAGMENTS)


def _strip_leading_slash(value: str) -> str:
    return value[1:] if value.startswith("/") else value


class AuditMiddleware:
    def __init__(self, app: ASGIApp, pipeline: "AuditPipeline | None" = None):
        self.app = app
        self.pipeline = pipeline

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self.pipeline is None or is_excluded(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        captured = await CapturedRequest.drain(scope, receive)
        request_body = captured.body
        request_info = self._request_context(scope, request_body)
        if request_info is not None:
            await self._audit(self.pipeline.builder.build_from_request, request_info)

        # Auditing may have consumed or altered the cached body; restore it
        captured.body = request_body

        response = CapturedResponse()
        await self.app(scope, captured.cursor(), response.send)

        response_body = response.body
        if request_info is not None and response_body.strip():
            response_info = ResponseAuditContext(
                context_path=request_info.context_path,
                headers=request_info.headers,
                body=response_body,
            )
            await self._audit(self.pipeline.builder.build_from_response, response_info)

        await response.flush(send)

    def _request_context(self, scope: Scope, body: str) -> RequestAuditContext | None:
        try:
            root_path = scope.get("root_path", "") or ""
            path = scope.get("path", "")
            route_path = path[len(root_path):] if root_path and path.startswith(root_path) else path

            query = QueryParams(scope.get("query_string", b""))
            return RequestAuditContext(
                context_path=_strip_leading_slash(root_path) or self.pipeline.context_path,
                headers=dict(Headers(scope=scope).items()),
                query_params={key: ",".join(query.getlist(key)) for key in query.keys()},
                path_params=self.pipeline.resolver.resolve(route_path),
                body=body,
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("audit.request_context_failed", path=scope.get("path"), error=str(exc))
            return None

    async def _audit(self, build: Callable[[Any], Any], info: Any) -> None:
        try:
            envelope = build(info)
            await run_in_threadpool(self.pipeline.publisher.publish, envelope)
        except Exception as exc:  # noqa: BLE001
            logger.error("audit.capture_failed", origin=info.context_path, error=str(exc))
