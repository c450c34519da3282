"""Reverse proxy route for provider-hosted auth handler pages."""

from fastapi import APIRouter, Depends
from starlette.requests import Request
from starlette.responses import Response

from ..services.proxy_service import AUTH_HANDLER_PREFIX, AuthHandlerProxy
from .dependencies import get_auth_handler_proxy

router = APIRouter(tags=["auth-handler"])

PROXIED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


@router.api_route(f"{AUTH_HANDLER_PREFIX}/{{path:path}}", methods=PROXIED_METHODS, include_in_schema=False)
async def proxy_auth_handler(
    request: Request,
    path: str,
    proxy: AuthHandlerProxy = Depends(get_auth_handler_proxy),
) -> Response:
    """Forward the request to the auth handler upstream and mirror its response."""
    del path  # the full request path is forwarded as-is
    return await proxy.forward(request)
