from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TypeVar

import httpx

from .audit import JsonAuditLogger
from .auth import GraphAuthenticator
from .config import ProvisionerConfig
from .graph_client import GraphClient

T = TypeVar("T")

# Errors a single provisioning step may raise without aborting the run.
STEP_ERRORS = (httpx.HTTPError, RuntimeError, ValueError, LookupError)


@dataclass
class TenantContext:
    tenant_id: str
    graph: GraphClient
    audit: JsonAuditLogger
    correlation_id: str

    def info(self, message: str, **kwargs: Any) -> None:
        self.audit.info(message, tenant_id=self.tenant_id, correlation_id=self.correlation_id, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.audit.warning(message, tenant_id=self.tenant_id, correlation_id=self.correlation_id, **kwargs)

    def close(self) -> None:
        self.graph.close()


def open_session(
    config: ProvisionerConfig,
    tenant_id: str,
    audit_logger: JsonAuditLogger,
    correlation_id: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
    authenticator: Optional[GraphAuthenticator] = None,
) -> TenantContext:
    """Resolve the tenant and build an authenticated Graph client for it."""
    tenant = config.get_tenant(tenant_id)
    correlation_id = correlation_id or str(uuid.uuid4())
    authenticator = authenticator or GraphAuthenticator(tenant, audit_logger)
    graph = GraphClient(
        tenant_config=tenant,
        authenticator=authenticator,
        audit_logger=audit_logger,
        correlation_id=correlation_id,
        transport=transport,
    )
    audit_logger.info(
        "session_opened",
        tenant_id=tenant.tenant_id,
        correlation_id=correlation_id,
        display_name=tenant.display_name,
    )
    return TenantContext(
        tenant_id=tenant.tenant_id,
        graph=graph,
        audit=audit_logger,
        correlation_id=correlation_id,
    )


def best_effort(
    ctx: TenantContext,
    step: str,
    warnings: List[str],
    operation: Callable[[], T],
) -> Optional[T]:
    """Run one step, turning recoverable failures into a logged warning."""
    try:
        return operation()
    except STEP_ERRORS as exc:
        detail = _describe(exc)
        ctx.warning("step_failed", step=step, error=detail)
        warnings.append(f"{step}: {detail}")
        return None


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"{exc.response.status_code} {exc.request.method} {exc.request.url}: {exc.response.text[:300]}"
    return str(exc) or exc.__class__.__name__
