"""
Audit models — per-request facts collected by the middleware and the envelope
published to the broker.

Wire shape of an envelope (field aliases are what subscribers see):

    {
      "origin": "orders",
      "component": "orders-api",
      "content": {
        "_metadata": {"id": …, "name": "application/json", "createdAt": …,
                      "correlation": {"client": …}, "context": {"user": …}},
        "id": "42", "query": "param", "data": "x"
      },
      "timestamp": "2024-10-10T10:00:00.000000Z",
      "_metadata": {"id": …, "name": "audit.events.audit-recorded"}
    }
"""

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

AUDIT_EVENT_NAME = "audit.events.audit-recorded"


class RequestAuditContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    context_path: str
    headers: dict[str, str] = Field(default_factory=dict)
    query_params: dict[str, str] = Field(default_factory=dict)
    path_params: dict[str, str] = Field(default_factory=dict)
    body: str = ""


class ResponseAuditContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    context_path: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""


class AuditMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    name: str = AUDIT_EVENT_NAME


class AuditEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    origin: str
    component: str
    content: dict[str, Any]
    timestamp: str
    metadata: AuditMetadata = Field(default_factory=AuditMetadata, alias="_metadata")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
