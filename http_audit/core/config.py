"""
Application configuration — all values overridable via environment variables.
Never hardcode secrets. Use .env for local dev, secrets manager in production.

Broker validation runs when settings are constructed, so a bad TLS or host
setup stops the process before it serves any traffic. AUDIT_TRUSTSTORE_PASSWORD
is deliberately not required: a PEM CA bundle has no password.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── Service ────────────────────────────────────────────────────────────────
    API_VERSION: str = "1.0.0"
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    # Used as the audit origin when the ASGI server supplies no root_path
    AUDIT_CONTEXT_PATH: str = ""

    # ── Broker ─────────────────────────────────────────────────────────────────
    AUDIT_ENABLED: bool = True
    # Comma-separated in the environment: AUDIT_HOSTS=mq-1,mq-2
    AUDIT_HOSTS: Annotated[list[str], NoDecode] = ["localhost"]
    AUDIT_PORT: int = 61613                     # Artemis STOMP acceptor
    AUDIT_USER: str | None = None
    AUDIT_PASSWORD: str | None = None
    AUDIT_HA: bool = False

    # ── Broker TLS ─────────────────────────────────────────────────────────────
    AUDIT_SSL_ENABLED: bool = False
    AUDIT_VERIFY_HOST: bool = False
    AUDIT_CLIENT_AUTH_REQUIRED: bool = False
    # PEM file with client certificate + key; reused as trust material if no truststore
    AUDIT_KEYSTORE: str | None = None
    AUDIT_KEYSTORE_PASSWORD: str | None = None
    # PEM CA bundle
    AUDIT_TRUSTSTORE: str | None = None
    AUDIT_TRUSTSTORE_PASSWORD: str | None = None

    # ── Broker tuning ──────────────────────────────────────────────────────────
    AUDIT_RECONNECT_ATTEMPTS: int = -1          # -1 = infinite
    AUDIT_INITIAL_CONNECT_ATTEMPTS: int = 10
    AUDIT_RETRY_INTERVAL_MS: int = 2_000
    AUDIT_RETRY_MULTIPLIER: float = 1.5
    AUDIT_MAX_RETRY_INTERVAL_MS: int = 30_000
    AUDIT_CONNECTION_TTL_MS: int = 60_000
    AUDIT_CALL_TIMEOUT_MS: int = 15_000
    AUDIT_CLIENT_FAILURE_CHECK_PERIOD_MS: int = 3_000

    # ── HTTP audit ─────────────────────────────────────────────────────────────
    AUDIT_HTTP_ENABLED: bool = False
    AUDIT_HTTP_OPENAPI_REST_SPEC: str | None = Field(
        default=None,
        description="Path or glob of the OpenAPI document used to resolve path parameters",
    )
    AUDIT_USER_ID_HEADER: str = "CJSCPPUID"
    AUDIT_CLIENT_CORRELATION_HEADER: str = "CPPCLIENTCORRELATIONID"

    # ── Logging ────────────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    @field_validator("AUDIT_HOSTS", mode="before")
    @classmethod
    def split_hosts(cls, v):
        if isinstance(v, str):
            return [host.strip() for host in v.split(",")]
        return v

    @model_validator(mode="after")
    def validate_broker(self) -> "Settings":
        if not self.AUDIT_ENABLED:
            return self

        if not [host for host in self.AUDIT_HOSTS if host and host.strip()]:
            raise ValueError("AUDIT_HOSTS must contain at least one broker host")
        if self.AUDIT_PORT <= 0:
            raise ValueError("AUDIT_PORT must be a positive integer")

        if self.AUDIT_SSL_ENABLED:
            has_trust = bool(self.AUDIT_TRUSTSTORE)
            has_key = bool(self.AUDIT_KEYSTORE)
            if not has_trust and not has_key:
                raise ValueError(
                    "When AUDIT_SSL_ENABLED=true, set either AUDIT_TRUSTSTORE or "
                    "AUDIT_KEYSTORE (will be reused as truststore)"
                )
            if has_key and self.AUDIT_KEYSTORE_PASSWORD is None:
                raise ValueError("AUDIT_KEYSTORE_PASSWORD must be set when AUDIT_KEYSTORE is provided")
            if self.AUDIT_CLIENT_AUTH_REQUIRED and not has_key:
                raise ValueError(
                    "AUDIT_CLIENT_AUTH_REQUIRED=true requires AUDIT_KEYSTORE and AUDIT_KEYSTORE_PASSWORD"
                )
        return self

    @property
    def audit_hosts(self) -> list[str]:
        return [host.strip() for host in self.AUDIT_HOSTS if host and host.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
