# marketcore/api/routers/payments.py
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from marketcore.api.deps import get_payment_service, to_http
from marketcore.domain.errors import CommerceError
from marketcore.domain.schemas import (
    AdvanceIn,
    ApproveIn,
    GatewayOutcomeOut,
    NetCancelIn,
    OrderOut,
    PaymentInfoOut,
    PaymentRequestIn,
    PaymentRequestOut,
    ReasonIn,
    RefundIn,
    WebhookIn,
)
from marketcore.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/{order_id}", response_model=PaymentInfoOut)
def get_payment_info(order_id: int, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.get_payment_info(order_id)
    except CommerceError as e:
        raise to_http(e)


@router.post("/{order_id}/request", response_model=PaymentRequestOut)
def request_payment(
    order_id: int,
    payload: PaymentRequestIn,
    svc: PaymentService = Depends(get_payment_service),
):
    try:
        return svc.request_payment(order_id, payload.return_url, payload.payment_method, payload.noti_url)
    except CommerceError as e:
        raise to_http(e)


@router.post("/{order_id}/approve", response_model=OrderOut)
def approve(order_id: int, payload: ApproveIn, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.approve(order_id, payload.payment_id, payload.paid_amount, payload.paid_at)
    except CommerceError as e:
        raise to_http(e)


@router.post("/{order_id}/fail", response_model=OrderOut)
def fail(order_id: int, payload: ReasonIn, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.fail(order_id, payload.reason)
    except CommerceError as e:
        raise to_http(e)


@router.post("/{order_id}/refund", response_model=OrderOut)
def refund(order_id: int, payload: RefundIn, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.refund(order_id, payload.refund_amount, payload.reason)
    except CommerceError as e:
        raise to_http(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel(order_id: int, payload: ReasonIn, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.cancel(order_id, payload.reason)
    except CommerceError as e:
        raise to_http(e)


@router.post("/{order_id}/status", response_model=OrderOut)
def advance(order_id: int, payload: AdvanceIn, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.advance(order_id, payload.status)
    except CommerceError as e:
        raise to_http(e)


@router.post("/gateway/callback", response_model=GatewayOutcomeOut)
async def gateway_callback(request: Request, svc: PaymentService = Depends(get_payment_service)):
    """
    Form post from the payment gateway's return page.
    """
    form = await request.form()
    try:
        # database and redis work stays off the event loop
        return await run_in_threadpool(svc.handle_gateway_callback, dict(form))
    except CommerceError as e:
        raise to_http(e)


@router.post("/gateway/net-cancel", response_model=GatewayOutcomeOut)
def net_cancel(payload: NetCancelIn, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.net_cancel(payload.transaction_id, payload.amount, payload.order_number, payload.req_url)
    except CommerceError as e:
        raise to_http(e)


@router.post("/webhook", response_model=OrderOut)
def webhook(payload: WebhookIn, svc: PaymentService = Depends(get_payment_service)):
    try:
        return svc.webhook(payload.type, payload.data)
    except CommerceError as e:
        raise to_http(e)
