"""
Audit envelope builder — pure transformation from request/response facts to
the envelope published on the audit topic.

Body handling:
  - JSON object  → fields merged into `content` next to path/query params
  - anything else (plain text, arrays, invalid JSON) → `content["_payload"]`
  - empty body   → nothing added
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Any

from http_audit.models.audit import (
    AuditEnvelope,
    RequestAuditContext,
    ResponseAuditContext,
)

PAYLOAD_KEY = "_payload"
METADATA_KEY = "_metadata"
UNKNOWN_MEDIA_TYPE = "unknown"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def _header(headers: dict[str, str], name: str) -> str | None:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def body_fields(body: str) -> dict[str, Any]:
    if not body:
        return {}
    try:
        parsed = json.loads(body)
    except ValueError:
        return {PAYLOAD_KEY: body}
    if isinstance(parsed, dict):
        return parsed
    return {PAYLOAD_KEY: body}


class AuditEnvelopeBuilder:
    def __init__(
        self,
        user_id_header: str = "CJSCPPUID",
        client_correlation_header: str = "CPPCLIENTCORRELATIONID",
    ):
        self.user_id_header = user_id_header
        self.client_correlation_header = client_correlation_header

    def build_from_request(self, ctx: RequestAuditContext) -> AuditEnvelope:
        fields: dict[str, Any] = {}
        fields.update(ctx.path_params)
        fields.update(ctx.query_params)
        fields.update(body_fields(ctx.body))
        return self._envelope(ctx.context_path, ctx.headers, fields)

    def build_from_response(self, ctx: ResponseAuditContext) -> AuditEnvelope:
        return self._envelope(ctx.context_path, ctx.headers, body_fields(ctx.body))

    def _content_metadata(self, headers: dict[str, str], timestamp: str) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "name": _header(headers, "content-type") or UNKNOWN_MEDIA_TYPE,
            "createdAt": timestamp,
            "correlation": {},
            "context": {},
        }
        client_correlation_id = _header(headers, self.client_correlation_header)
        if client_correlation_id is not None:
            metadata["correlation"]["client"] = client_correlation_id
        user_id = _header(headers, self.user_id_header)
        if user_id is not None:
            metadata["context"]["user"] = user_id
        return metadata

    def _envelope(
        self, context_path: str, headers: dict[str, str], fields: dict[str, Any]
    ) -> AuditEnvelope:
        timestamp = _now()
        content = dict(fields)
        content[METADATA_KEY] = self._content_metadata(headers, timestamp)
        return AuditEnvelope(
            origin=context_path,
            component=f"{context_path}-api",
            content=content,
            timestamp=timestamp,
        )
