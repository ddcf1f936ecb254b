"""
Sample endpoints demonstrating what the audit middleware records.

  POST /test-api/{entity_id}/resource              → 202, JSON body merged into the audit content
  GET  /test-another-api/{another_entity_id}/resource     → plain-text body, audited as `_payload`
  GET  /test-yet-another-api/{another_entity_id}/resource → JSON body, fields audited individually
"""

import html

from fastapi import APIRouter, HTTPException, Response, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from http_audit.core.logging import get_logger

router = APIRouter()
logger = get_logger(__name__)


# ── Schemas ────────────────────────────────────────────────────────────────────
class EntityIn(BaseModel):
    data: str | None = None


class EntityOut(BaseModel):
    entityId: str
    message: str


# ── Routes ─────────────────────────────────────────────────────────────────────
@router.post("/test-api/{entity_id}/resource", status_code=status.HTTP_202_ACCEPTED)
async def accept_entity(entity_id: str, payload: EntityIn):
    if not payload.data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="data is required")
    logger.info("entity.accepted", entity_id=entity_id)
    return Response(status_code=status.HTTP_202_ACCEPTED)


@router.get("/test-another-api/{another_entity_id}/resource", response_class=PlainTextResponse)
async def describe_entity(another_entity_id: str):
    return f"entity id = {html.escape(another_entity_id)}"


@router.get("/test-yet-another-api/{another_entity_id}/resource", response_model=EntityOut)
async def get_entity(another_entity_id: str):
    return EntityOut(entityId=html.escape(another_entity_id), message="Data retrieved successfully.")
