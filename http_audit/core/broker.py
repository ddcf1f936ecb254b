"""
Broker connection — one shared STOMP 1.2 connection to the Artemis cluster.

Artemis speaks STOMP natively, so the connection is a thin layer over stomp.py:
  - every configured host is part of the failover list
  - the initial connect tries each host up to AUDIT_INITIAL_CONNECT_ATTEMPTS times
  - after a failed initial connect or a drop, a background thread reconnects with exponential backoff
    (AUDIT_RECONNECT_ATTEMPTS, -1 = forever)
  - AUDIT_CALL_TIMEOUT_MS bounds every socket operation

The connection never blocks startup: if the broker is down the app still
serves traffic and audit events are dropped until it comes back.
"""

import re
import threading
from urllib.parse import quote

import stomp
from stomp.exception import StompException

from http_audit.core.config import Settings
from http_audit.core.logging import get_logger

logger = get_logger(__name__)

_PASSWORD_IN_URL = re.compile(r"((?:trustStore|keyStore)Password=)[^&]*")


class BrokerUnavailableError(Exception):
    pass


def _flag(value: bool) -> str:
    return "true" if value else "false"


def build_connection_urls(settings: Settings) -> list[str]:
    """Render the Artemis HA connection string, one URL per host."""
    common = "&".join([
        f"ha={_flag(settings.AUDIT_HA)}",
        f"reconnectAttempts={settings.AUDIT_RECONNECT_ATTEMPTS}",
        f"initialConnectAttempts={settings.AUDIT_INITIAL_CONNECT_ATTEMPTS}",
        f"retryInterval={settings.AUDIT_RETRY_INTERVAL_MS}",
        f"retryIntervalMultiplier={settings.AUDIT_RETRY_MULTIPLIER}",
        f"maxRetryInterval={settings.AUDIT_MAX_RETRY_INTERVAL_MS}",
        f"connectionTtl={settings.AUDIT_CONNECTION_TTL_MS}",
        f"callTimeout={settings.AUDIT_CALL_TIMEOUT_MS}",
        f"failoverOnInitialConnection={_flag(settings.AUDIT_HA)}",
    ])

    ssl = ""
    if settings.AUDIT_SSL_ENABLED:
        trust_path, trust_password = _trust_material(settings)
        ssl = (
            f"sslEnabled=true&verifyHost={_flag(settings.AUDIT_VERIFY_HOST)}"
            f"&trustStorePath={quote(trust_path or '')}"
            f"&trustStorePassword={quote(trust_password or '')}"
        )
        if settings.AUDIT_CLIENT_AUTH_REQUIRED:
            ssl += (
                f"&keyStorePath={quote(settings.AUDIT_KEYSTORE or '')}"
                f"&keyStorePassword={quote(settings.AUDIT_KEYSTORE_PASSWORD or '')}"
            )
        ssl += "&"

    return [f"tcp://{host}:{settings.AUDIT_PORT}?{ssl}{common}" for host in settings.audit_hosts]


def mask_connection_url(url: str) -> str:
    return _PASSWORD_IN_URL.sub(r"\1******", url)


def _trust_material(settings: Settings) -> tuple[str | None, str | None]:
    # Keystore doubles as truststore when no truststore is configured
    if settings.AUDIT_TRUSTSTORE:
        return settings.AUDIT_TRUSTSTORE, settings.AUDIT_TRUSTSTORE_PASSWORD
    return settings.AUDIT_KEYSTORE, settings.AUDIT_KEYSTORE_PASSWORD


def log_connection_summary(settings: Settings) -> None:
    logger.info(
        "broker.configuring",
        hosts=",".join(settings.audit_hosts),
        port=settings.AUDIT_PORT,
        ssl=settings.AUDIT_SSL_ENABLED,
        ha=settings.AUDIT_HA,
        reconnect_attempts=settings.AUDIT_RECONNECT_ATTEMPTS,
        initial_connect_attempts=settings.AUDIT_INITIAL_CONNECT_ATTEMPTS,
        retry_interval_ms=settings.AUDIT_RETRY_INTERVAL_MS,
        retry_multiplier=settings.AUDIT_RETRY_MULTIPLIER,
        max_retry_interval_ms=settings.AUDIT_MAX_RETRY_INTERVAL_MS,
        connection_ttl_ms=settings.AUDIT_CONNECTION_TTL_MS,
        call_timeout_ms=settings.AUDIT_CALL_TIMEOUT_MS,
        verify_host=settings.AUDIT_VERIFY_HOST,
        client_auth_required=settings.AUDIT_CLIENT_AUTH_REQUIRED,
        urls=[mask_connection_url(url) for url in build_connection_urls(settings)],
    )


class _ReconnectListener(stomp.ConnectionListener):
    def __init__(self, owner: "StompBrokerConnection"):
        self.owner = owner

    def on_disconnected(self):
        self.owner._on_disconnected()


class StompBrokerConnection:
    """Shared, thread-safe publish handle. stomp.py serialises frame writes."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.host_and_ports = [(host, settings.AUDIT_PORT) for host in settings.audit_hosts]
        self._stopping = threading.Event()
        self._reconnecting = threading.Lock()

        self.connection = stomp.Connection12(
            host_and_ports=self.host_and_ports,
            reconnect_sleep_initial=settings.AUDIT_RETRY_INTERVAL_MS / 1000,
            reconnect_sleep_increase=max(settings.AUDIT_RETRY_MULTIPLIER - 1.0, 0.0),
            reconnect_sleep_max=settings.AUDIT_MAX_RETRY_INTERVAL_MS / 1000,
            reconnect_attempts_max=settings.AUDIT_INITIAL_CONNECT_ATTEMPTS,
            timeout=settings.AUDIT_CALL_TIMEOUT_MS / 1000,
            heartbeats=(
                settings.AUDIT_CLIENT_FAILURE_CHECK_PERIOD_MS,
                settings.AUDIT_CONNECTION_TTL_MS,
            ),
        )
        if settings.AUDIT_SSL_ENABLED:
            trust_path, _ = _trust_material(settings)
            client_cert = settings.AUDIT_KEYSTORE if settings.AUDIT_CLIENT_AUTH_REQUIRED else None
            self.connection.set_ssl(
                for_hosts=self.host_and_ports,
                ca_certs=trust_path,
                cert_file=client_cert,
                key_file=client_cert,
                password=settings.AUDIT_KEYSTORE_PASSWORD if client_cert else None,
            )
        self.connection.set_listener("audit-reconnect", _ReconnectListener(self))

    def is_connected(self) -> bool:
        return self.connection.is_connected()

    def connect(self) -> bool:
        """Connect once; on failure keep retrying in the background."""
        if self._connect():
            return True
        self._start_reconnect()
        return False

    def _connect(self) -> bool:
        try:
            self.connection.connect(
                username=self.settings.AUDIT_USER or "",
                passcode=self.settings.AUDIT_PASSWORD or "",
                wait=True,
            )
        except (StompException, OSError) as exc:
            logger.warning(
                "broker.connect_failed",
                hosts=",".join(self.settings.audit_hosts),
                error=str(exc),
            )
            return False
        logger.info("broker.connected", hosts=",".join(self.settings.audit_hosts))
        return True

    def send(self, destination: str, body: str, headers: dict[str, str]) -> None:
        if not self.is_connected():
            raise BrokerUnavailableError("Not connected to audit broker")
        try:
            self.connection.send(destination=destination, body=body, headers=headers)
        except (StompException, OSError) as exc:
            raise BrokerUnavailableError(str(exc)) from exc

    def close(self) -> None:
        self._stopping.set()
        if self.is_connected():
            try:
                self.connection.disconnect()
            except (StompException, OSError) as exc:
                logger.warning("broker.disconnect_failed", error=str(exc))
        logger.info("broker.closed")

    def _on_disconnected(self) -> None:
        if self._stopping.is_set():
            return
        logger.warning("broker.disconnected", hosts=",".join(self.settings.audit_hosts))
        self._start_reconnect()

    def _start_reconnect(self) -> None:
        if self._stopping.is_set():
            return
        threading.Thread(target=self._reconnect_loop, name="audit-broker-reconnect", daemon=True).start()

    def _reconnect_loop(self) -> None:
        if not self._reconnecting.acquire(blocking=False):
            return
        try:
            attempts = self.settings.AUDIT_RECONNECT_ATTEMPTS
            delay = self.settings.AUDIT_RETRY_INTERVAL_MS / 1000
            ceiling = self.settings.AUDIT_MAX_RETRY_INTERVAL_MS / 1000
            attempt = 0
            while not self._stopping.is_set() and (attempts < 0 or attempt < attempts):
                attempt += 1
                if self._stopping.wait(delay):
                    break
                if self._connect():
                    return
                delay = min(delay * self.settings.AUDIT_RETRY_MULTIPLIER, ceiling)
            if not self._stopping.is_set():
                logger.error("broker.reconnect_exhausted", attempts=attempt)
        finally:
            self._reconnecting.release()
