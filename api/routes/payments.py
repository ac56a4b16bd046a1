"""
Breeze payment routes.

Thin adapters over BreezeGateway: the return route answers with redirects
only, the webhook route with the JSON envelope, merchant routes require the
merchant bearer token.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse

from api.dependencies import get_breeze_gateway, require_merchant
from application.dtos.payments import Availability, RefundRequest
from application.services.breeze_gateway import BreezeGateway
from core.config import settings
from core.logging_config import get_logger
from core.response import success_response


router = APIRouter(prefix="/payments/breeze", tags=["Payments"])
logger = get_logger(__name__)

NOTICE_COOKIE_MAX_AGE = 300


def _publish_events(gateway: BreezeGateway) -> None:
    for event in gateway.events:
        logger.info(
            "order_payment_event",
            event_type=type(event).__name__,
            order_id=event.order_id,
            event_id=event.event_id,
            provider_ref=event.provider_ref,
        )
    gateway.clear_events()


@router.post("/webhook", summary="Breeze webhook")
async def breeze_webhook(request: Request, gateway: BreezeGateway = Depends(get_breeze_gateway)):
    raw_body = await request.body()
    ack = await gateway.handle_webhook(raw_body)
    _publish_events(gateway)
    return success_response(data=ack.model_dump(mode="json"), message="Webhook processed")


@router.get("/return", summary="Buyer return from Breeze", response_class=RedirectResponse)
async def breeze_return(
    order_id: Optional[str] = Query(default=None, alias="orderId"),
    payment_status: Optional[str] = Query(default=None, alias="status"),
    token: Optional[str] = Query(default=None),
    gateway: BreezeGateway = Depends(get_breeze_gateway),
):
    outcome = await gateway.handle_return(order_id, payment_status, token)
    response = RedirectResponse(outcome.redirect_url, status_code=status.HTTP_303_SEE_OTHER)
    response.headers["Cache-Control"] = "no-store"
    if outcome.clear_cart:
        response.delete_cookie(settings.store.cart_cookie, path="/")
    if outcome.notice:
        response.set_cookie(
            settings.store.notice_cookie,
            outcome.notice,
            max_age=NOTICE_COOKIE_MAX_AGE,
            path="/",
            httponly=True,
            samesite="lax",
        )
    return response


@router.post(
    "/orders/{order_id}/checkout",
    summary="Create a Breeze payment page for an order",
    dependencies=[Depends(require_merchant)],
)
async def create_checkout(order_id: int, gateway: BreezeGateway = Depends(get_breeze_gateway)):
    result = await gateway.create_checkout_session(order_id)
    return success_response(data=result.model_dump(mode="json"), message="Checkout session created")


@router.post(
    "/orders/{order_id}/refunds",
    summary="Refund an order through Breeze",
    dependencies=[Depends(require_merchant)],
)
async def refund_order(
    order_id: int,
    payload: RefundRequest,
    gateway: BreezeGateway = Depends(get_breeze_gateway),
):
    outcome = await gateway.refund(order_id, payload.amount, payload.reason)
    _publish_events(gateway)
    return success_response(data=outcome.model_dump(mode="json"), message="Refund processed")


@router.get("/availability", summary="Whether Breeze checkout is offered")
async def availability(
    currency: str = Query(..., min_length=3, max_length=3),
    gateway: BreezeGateway = Depends(get_breeze_gateway),
):
    result = Availability(
        currency=currency.upper(),
        available=gateway.is_available(currency),
        test_mode=gateway.config.test_mode,
    )
    return success_response(data=result.model_dump(mode="json"))
