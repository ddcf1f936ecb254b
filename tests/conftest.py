"""Shared test doubles for the audit pipeline."""

import json

import pytest

from http_audit.core.broker import BrokerUnavailableError


class RecordingConnection:
    """Stands in for the STOMP connection; keeps every frame it is asked to send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    def send(self, destination: str, body: str, headers: dict[str, str]) -> None:
        if self.fail:
            raise BrokerUnavailableError("Not connected to audit broker")
        self.sent.append({"destination": destination, "body": json.loads(body), "headers": headers})

    def is_connected(self) -> bool:
        return not self.fail

    @property
    def envelopes(self) -> list[dict]:
        return [frame["body"] for frame in self.sent]


@pytest.fixture
def connection() -> RecordingConnection:
    return RecordingConnection()


@pytest.fixture
def broken_connection() -> RecordingConnection:
    return RecordingConnection(fail=True)


ORDERS_CONTRACT = {
    "openapi": "3.0.1",
    "paths": {
        "/orders/{id}/items": {
            "get": {"parameters": [{"name": "id", "in": "path", "required": True}]},
        },
        "/customers/{customer_id}/orders/{order_id}": {
            "parameters": [
                {"name": "customer_id", "in": "path"},
                {"name": "order_id", "in": "path"},
            ],
            "get": {},
        },
        "/status": {
            "get": {"parameters": [{"name": "verbose", "in": "query"}]},
        },
    },
}


@pytest.fixture
def orders_contract() -> dict:
    return json.loads(json.dumps(ORDERS_CONTRACT))
