"""
Audit publisher — fire-and-forget delivery of envelopes to the audit topic.

Availability wins over durability: a serialization error or an unreachable
broker is logged and the event is dropped. Nothing here raises to the caller,
and there is no retry, spill file or buffering.
"""

from typing import Protocol

from pydantic_core import PydanticSerializationError

from http_audit.core.logging import get_logger
from http_audit.models.audit import AuditEnvelope

logger = get_logger(__name__)

AUDIT_TOPIC = "jms.topic.auditing.event"
# Message property subscribers filter on without parsing the body
SELECTOR_PROPERTY = "CPPNAME"


class BrokerConnection(Protocol):
    def send(self, destination: str, body: str, headers: dict[str, str]) -> None: ...


class AuditPublisher:
    def __init__(self, connection: BrokerConnection, topic: str = AUDIT_TOPIC):
        self.connection = connection
        self.topic = topic

    def publish(self, envelope: AuditEnvelope | None) -> None:
        if envelope is None:
            logger.warning("audit.envelope_missing")
            return

        audit_id = str(envelope.metadata.id)
        try:
            body = envelope.to_json()
        except (PydanticSerializationError, TypeError, ValueError) as exc:
            logger.error("audit.serialization_failed", audit_id=audit_id, error=str(exc))
            return

        headers = {
            SELECTOR_PROPERTY: envelope.metadata.name,
            # Artemis routes STOMP sends to a multicast (topic) address
            "destination-type": "MULTICAST",
            "content-type": "application/json",
        }
        try:
            self.connection.send(self.topic, body, headers)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "audit.publish_failed",
                audit_id=audit_id,
                timestamp=envelope.timestamp,
                topic=self.topic,
                error=str(exc),
            )
            return

        logger.info("audit.published", audit_id=audit_id, timestamp=envelope.timestamp, topic=self.topic)
