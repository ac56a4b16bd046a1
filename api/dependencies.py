"""
API dependencies - merchant authentication and gateway wiring
"""
import hmac
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from application.services.breeze_gateway import BreezeGateway
from core.config import settings

# HTTP Bearer for merchant calls (host order system)
http_bearer = HTTPBearer(
    scheme_name="Bearer",
    description="Merchant API token",
    auto_error=False,
)


async def require_merchant(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> None:
    """Reject calls that do not present MERCHANT_API_TOKEN"""
    presented = credentials.credentials if credentials and credentials.credentials else ""
    expected = settings.MERCHANT_API_TOKEN or ""
    if not presented or not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid merchant credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_breeze_gateway(request: Request) -> BreezeGateway:
    """One gateway per request over the process-wide client, lock and session factory"""
    state = request.app.state
    return BreezeGateway(
        config=state.gateway_config,
        provider=state.payment_provider,
        uow_factory=state.uow_factory,
        lock=state.order_lock,
        store=settings.store,
    )
