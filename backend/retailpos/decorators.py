# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import g, request

from .errors import Unauthenticated
from .services import permission_service
from .services.token_service import extract_bearer_token, resolve_credential


def require_auth(f):
    """
    Require a valid credential and establish the tenant context.

    MULTI-TENANT: Sets g.tenant_context to the resolved TenantContext. Routes
    pass it to services explicitly; nothing below the route reads g.

    SECURITY: Raises Unauthenticated (401) when the Authorization header is
    missing or the credential is invalid, expired or inconsistent.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = extract_bearer_token(request.headers.get("Authorization"))
        g.tenant_context = resolve_credential(token)
        return f(*args, **kwargs)

    return decorated_function


def require_permission(operation: str):
    """
    Require the caller's role to allow operation.

    Must be applied below @require_auth so the role check runs after
    resolution and before the view touches any data.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            ctx = getattr(g, "tenant_context", None)
            if ctx is None:
                raise Unauthenticated()
            permission_service.require_permission(ctx, operation)
            return f(*args, **kwargs)

        return decorated_function
    return decorator
