"""
Startup assembly — builds the audit pipeline once from configuration.

    AUDIT_ENABLED=false        → no pipeline, middleware passes everything through
    AUDIT_HTTP_ENABLED=true    → OpenAPI contract compiled for path parameters
    AUDIT_HTTP_ENABLED=false   → requests audited without path parameters

Contract problems raise ContractError here, before the app serves traffic.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from starlette.applications import Starlette

from http_audit.core.broker import StompBrokerConnection, log_connection_summary
from http_audit.core.config import Settings
from http_audit.core.logging import get_logger
from http_audit.middleware.audit import AuditMiddleware
from http_audit.services.contract import (
    ContractError,
    compile_contract,
    load_contract_document,
)
from http_audit.services.envelope import AuditEnvelopeBuilder
from http_audit.services.path_parameters import (
    NullPathParameterResolver,
    PathParameterResolver,
)
from http_audit.services.publisher import AuditPublisher, BrokerConnection

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuditPipeline:
    resolver: PathParameterResolver | NullPathParameterResolver
    builder: AuditEnvelopeBuilder
    publisher: AuditPublisher
    connection: BrokerConnection
    context_path: str = ""

    def start(self) -> None:
        connect = getattr(self.connection, "connect", None)
        if connect is not None:
            connect()

    def stop(self) -> None:
        close = getattr(self.connection, "close", None)
        if close is not None:
            close()


def build_resolver(
    settings: Settings, contract: Mapping | None = None
) -> PathParameterResolver | NullPathParameterResolver:
    if not settings.AUDIT_HTTP_ENABLED:
        logger.info("contract.skipped", reason="http audit path resolution disabled")
        return NullPathParameterResolver()

    if contract is None:
        if not settings.AUDIT_HTTP_OPENAPI_REST_SPEC:
            raise ContractError(
                "AUDIT_HTTP_OPENAPI_REST_SPEC must be set when AUDIT_HTTP_ENABLED=true"
            )
        contract = load_contract_document(settings.AUDIT_HTTP_OPENAPI_REST_SPEC)

    return PathParameterResolver(compile_contract(contract))


def build_audit_pipeline(
    settings: Settings,
    contract: Mapping | None = None,
    connection: BrokerConnection | None = None,
) -> AuditPipeline | None:
    if not settings.AUDIT_ENABLED:
        logger.info("audit.disabled")
        return None

    resolver = build_resolver(settings, contract)

    if connection is None:
        log_connection_summary(settings)
        connection = StompBrokerConnection(settings)

    return AuditPipeline(
        resolver=resolver,
        builder=AuditEnvelopeBuilder(
            user_id_header=settings.AUDIT_USER_ID_HEADER,
            client_correlation_header=settings.AUDIT_CLIENT_CORRELATION_HEADER,
        ),
        publisher=AuditPublisher(connection),
        connection=connection,
        context_path=settings.AUDIT_CONTEXT_PATH.lstrip("/"),
    )


def install_audit(
    app: Starlette,
    settings: Settings,
    contract: Mapping | None = None,
    connection: BrokerConnection | None = None,
) -> AuditPipeline | None:
    """Build the pipeline and register AuditMiddleware on `app`."""
    pipeline = build_audit_pipeline(settings, contract, connection)
    app.add_middleware(AuditMiddleware, pipeline=pipeline)
    return pipeline
