"""FastAPI dependency injection utilities."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Header

from exam_engine.core.exceptions import ValidationError


@dataclass(frozen=True)
class TenantScope:
    """Partition key for every exam, mark, scale and result.

    Tenant and branch are resolved by the calling layer; the engine only
    filters by them.
    """

    tenant_id: int
    branch_id: int | None = None


class RequestContext:
    """Context object containing the tenant scope and acting user."""

    def __init__(self, scope: TenantScope, actor_id: int | None = None):
        self.scope = scope
        self.actor_id = actor_id

    @property
    def tenant_id(self) -> int:
        return self.scope.tenant_id

    @property
    def branch_id(self) -> int | None:
        return self.scope.branch_id


def _parse_id(value: str | None, header: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"Invalid {header} header", details={"header": header, "value": value})


def get_request_context(
    x_tenant_id: str = Header(..., description="Tenant ID"),
    x_branch_id: str | None = Header(None, description="Branch ID"),
    x_actor_id: str | None = Header(None, description="Acting user ID, recorded in the audit log"),
) -> RequestContext:
    """Build the request context from the scoping headers."""
    tenant_id = _parse_id(x_tenant_id, "X-Tenant-Id")
    if tenant_id is None:
        raise ValidationError("X-Tenant-Id header is required", details={"header": "X-Tenant-Id"})

    return RequestContext(
        scope=TenantScope(tenant_id=tenant_id, branch_id=_parse_id(x_branch_id, "X-Branch-Id")),
        actor_id=_parse_id(x_actor_id, "X-Actor-Id"),
    )


# Type alias for dependency injection
ScopeContext = Annotated[RequestContext, Depends(get_request_context)]
