import json
from datetime import timedelta
from unittest.mock import AsyncMock

import httpx
import pytest

from alphamarket.application.services import PaymentService, SubscriptionService
from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import PaymentStatus
from alphamarket.domain.errors import DomainError, GatewayError, NotFoundError
from alphamarket.infrastructure.db.models import Payment, Plan, Subscription, User
from alphamarket.infrastructure.db.repository import PaymentRepository
from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.infrastructure.payments.cashfree import CashfreeClient

@pytest.fixture
def payments(services) -> PaymentService:
    return services["payment_service"]


async def _create_order(payments: PaymentService, marketplace: dict) -> str:
    with session_scope() as session:
        user = session.get(User, marketplace["investor_id"])
        order = await payments.create_order(session, user, marketplace["strategy_id"], marketplace["plan_id"])
    return order["orderId"]


def _payment(order_id: str) -> Payment:
    with session_scope() as session:
        return PaymentRepository(session).find_by_order_id(order_id)


@pytest.mark.asyncio
async def test_create_order_opens_a_pending_payment(payments, marketplace, cashfree):
    with session_scope() as session:
        user = session.get(User, marketplace["investor_id"])
        order = await payments.create_order(session, user, marketplace["strategy_id"], marketplace["plan_id"])

    assert order["orderId"].startswith("AM_")
    assert order["paymentSessionId"] == "session_abc"

    kwargs = cashfree.create_order.await_args.kwargs
    assert kwargs["order_id"] == order["orderId"]
    assert kwargs["amount"] == 2499.0
    assert kwargs["customer"]["customer_email"] == "inv@example.com"
    assert kwargs["customer"]["customer_phone"] == "9999999999"
    assert kwargs["return_url"] == f"http://localhost:5000/payment-callback?order_id={order['orderId']}"
    assert kwargs["notify_url"] == "http://localhost:5000/api/payments/webhook"

    payment = _payment(order["orderId"])
    assert payment.status == PaymentStatus.PENDING
    assert payment.amount == 2499
    assert payment.advisor_id == marketplace["advisor_id"]


@pytest.mark.asyncio
async def test_create_order_rejects_free_and_foreign_plans(payments, marketplace):
    with session_scope() as session:
        session.add(Plan(id="free-plan", advisor_id=marketplace["advisor_id"], name="Trial", amount=0))
        other = User(username="other", email="other@example.com", password="x")
        session.add(other)
        session.flush()
        session.add(Plan(id="foreign-plan", advisor_id=other.id, name="Elsewhere", amount=100))

    with session_scope() as session:
        user = session.get(User, marketplace["investor_id"])
        with pytest.raises(DomainError, match="greater than zero"):
            await payments.create_order(session, user, marketplace["strategy_id"], "free-plan")
        with pytest.raises(DomainError, match="not offered"):
            await payments.create_order(session, user, marketplace["strategy_id"], "foreign-plan")
        with pytest.raises(NotFoundError):
            await payments.create_order(session, user, "missing", marketplace["plan_id"])


@pytest.mark.asyncio
async def test_verify_paid_order_settles_exactly_once(payments, marketplace, cashfree):
    order_id = await _create_order(payments, marketplace)
    cashfree.fetch_order.return_value = {"order_status": "PAID"}
    cashfree.fetch_payments.return_value = [
        {"payment_status": "FAILED", "cf_payment_id": 1},
        {"payment_status": "SUCCESS", "cf_payment_id": 2, "payment_group": "upi"},
    ]

    with session_scope() as session:
        result = await payments.verify(session, marketplace["investor_id"], order_id)
    assert result["success"] is True
    assert result["orderStatus"] == "PAID"

    payment = _payment(order_id)
    assert payment.status == PaymentStatus.PAID
    assert payment.cf_payment_id == "2"
    assert payment.payment_method == "upi"
    assert payment.paid_at is not None
    assert payment.subscription_id == result["subscriptionId"]

    with session_scope() as session:
        again = await payments.verify(session, marketplace["investor_id"], order_id)
        subscriptions = session.query(Subscription).all()
    assert again["subscriptionId"] == result["subscriptionId"]
    assert cashfree.fetch_order.await_count == 1
    assert len(subscriptions) == 1
    assert subscriptions[0].plan_id == marketplace["plan_id"]
    assert subscriptions[0].expires_at is not None


@pytest.mark.parametrize("order_status,expected", [("ACTIVE", PaymentStatus.ACTIVE), ("EXPIRED", PaymentStatus.FAILED)])
@pytest.mark.asyncio
async def test_verify_unsettled_orders(payments, marketplace, cashfree, order_status, expected):
    order_id = await _create_order(payments, marketplace)
    cashfree.fetch_order.return_value = {"order_status": order_status}

    with session_scope() as session:
        result = await payments.verify(session, marketplace["investor_id"], order_id)
    assert result == {"success": False, "orderStatus": order_status}
    assert _payment(order_id).status == expected


@pytest.mark.asyncio
async def test_verify_someone_elses_order(payments, marketplace):
    order_id = await _create_order(payments, marketplace)
    with session_scope() as session:
        with pytest.raises(NotFoundError):
            await payments.verify(session, marketplace["advisor_id"], order_id)


# --- Poller ---

@pytest.mark.asyncio
async def test_await_settlement_polls_until_paid(payments, marketplace, cashfree):
    order_id = await _create_order(payments, marketplace)
    cashfree.fetch_order.side_effect = [{"order_status": "ACTIVE"}, GatewayError("timeout"), {"order_status": "PAID"}]

    result = await payments.await_settlement(marketplace["investor_id"], order_id)

    assert result["orderStatus"] == "PAID"
    assert cashfree.fetch_order.await_count == 3
    assert payments._sleep.await_count == 2
    assert _payment(order_id).status == PaymentStatus.PAID


@pytest.mark.asyncio
async def test_await_settlement_gives_up_after_max_attempts(payments, marketplace, cashfree):
    order_id = await _create_order(payments, marketplace)

    result = await payments.await_settlement(marketplace["investor_id"], order_id)

    assert result == {"success": False, "orderStatus": "ACTIVE"}
    assert cashfree.fetch_order.await_count == payments.max_attempts == 8
    assert payments._sleep.await_count == 7


@pytest.mark.asyncio
async def test_await_settlement_reraises_when_every_attempt_fails(payments, marketplace, cashfree):
    order_id = await _create_order(payments, marketplace)
    cashfree.fetch_order.side_effect = GatewayError("Payment gateway is unreachable")

    with pytest.raises(GatewayError):
        await payments.await_settlement(marketplace["investor_id"], order_id)


# --- Webhook ---

def _signed_webhook_service(secret: str = "cf-secret") -> PaymentService:
    return PaymentService(
        CashfreeClient("app-id", secret),
        SubscriptionService(),
        public_base_url="http://localhost:5000",
        sleep=AsyncMock(),
    )


@pytest.mark.asyncio
async def test_webhook_with_valid_signature_settles(marketplace):
    service = _signed_webhook_service()
    order_id = await _create_order(_order_creator(service), marketplace)
    body = json.dumps({
        "type": "PAYMENT_SUCCESS_WEBHOOK",
        "data": {"order": {"order_id": order_id}, "payment": {"cf_payment_id": 77, "payment_group": "card"}},
    }).encode()
    timestamp = "1760000000"
    signature = service.cashfree.compute_signature(body, timestamp)

    with session_scope() as session:
        assert await service.handle_webhook(session, body, signature, timestamp) == {"ok": True}

    payment = _payment(order_id)
    assert payment.status == PaymentStatus.PAID
    assert payment.cf_payment_id == "77"
    assert payment.payment_method == "card"
    assert payment.subscription_id is not None


@pytest.mark.asyncio
async def test_webhook_with_bad_signature_is_rejected():
    service = _signed_webhook_service()
    body = b'{"type": "PAYMENT_SUCCESS_WEBHOOK"}'
    signature = CashfreeClient("app-id", "wrong-secret").compute_signature(body, "1")

    with session_scope() as session:
        with pytest.raises(DomainError, match="Invalid webhook signature"):
            await service.handle_webhook(session, body, signature, "1")
        with pytest.raises(DomainError, match="Invalid webhook signature"):
            await service.handle_webhook(session, body, None, None)


def test_webhook_route_maps_bad_signature_to_400(client, cashfree):
    cashfree.verify_webhook_signature.return_value = False
    r = client.post(
        "/api/payments/webhook",
        content=b"{}",
        headers={"x-webhook-signature": "nope", "x-webhook-timestamp": "1"},
    )
    assert r.status_code == 400
    assert cashfree.verify_webhook_signature.call_args.args == (b"{}", "nope", "1")


def _order_creator(service: PaymentService) -> PaymentService:
    """Creating the order needs a gateway that answers; the real client has no network here."""
    service.cashfree.create_order = AsyncMock(return_value={"payment_session_id": "session_xyz"})
    return service


# --- Reconciliation ---

@pytest.mark.asyncio
async def test_reconcile_pending_settles_stale_paid_orders(payments, marketplace, cashfree):
    stale = await _create_order(payments, marketplace)
    fresh = await _create_order(payments, marketplace)
    with session_scope() as session:
        PaymentRepository(session).find_by_order_id(stale).created_at = utcnow() - timedelta(minutes=5)
    cashfree.fetch_order.return_value = {"order_status": "PAID"}

    assert await payments.reconcile_pending() == 1
    assert _payment(stale).status == PaymentStatus.PAID
    assert _payment(fresh).status == PaymentStatus.PENDING


# --- API ---

def test_checkout_over_http(client, investor, strategy, cashfree):
    r = client.post(
        "/api/payments/create-order",
        json={"strategyId": strategy["id"], "planId": strategy["plan"]["id"]},
        headers=investor.headers,
    )
    assert r.status_code == 200
    order_id = r.json()["orderId"]

    cashfree.fetch_order.return_value = {"order_status": "PAID"}
    r = client.post("/api/payments/verify", json={"orderId": order_id, "wait": True}, headers=investor.headers)
    assert r.json()["success"] is True

    history = client.get("/api/payments/history", headers=investor.headers).json()
    assert len(history) == 1
    assert history[0]["status"] == "PAID"
    assert history[0]["amount"] == 999.0
    assert history[0]["subscriptionId"] == r.json()["subscriptionId"]


def test_gateway_failure_is_a_502(client, investor, strategy, cashfree):
    cashfree.create_order.side_effect = GatewayError("Payment gateway is unreachable")
    r = client.post(
        "/api/payments/create-order",
        json={"strategyId": strategy["id"], "planId": strategy["plan"]["id"]},
        headers=investor.headers,
    )
    assert r.status_code == 502
    assert r.json()["detail"] == "Payment gateway is unreachable"


def test_cashfree_signature_is_hmac_of_timestamp_and_body():
    client = CashfreeClient("app-id", "cf-secret")
    body = b'{"a": 1}'
    signature = client.compute_signature(body, "1700000000")
    assert client.verify_webhook_signature(body, signature, "1700000000")
    assert not client.verify_webhook_signature(body + b" ", signature, "1700000000")
    assert not client.verify_webhook_signature(body, signature, "1700000001")
    assert not CashfreeClient("app-id", None).verify_webhook_signature(body, signature, "1700000000")


def test_non_ascii_signature_is_a_mismatch():
    client = CashfreeClient("app-id", "cf-secret")
    assert not client.verify_webhook_signature(b'{"a": 1}', "Ã©", "1700000000")


def test_webhook_route_rejects_non_ascii_signature(client, cashfree):
    cashfree.verify_webhook_signature.side_effect = CashfreeClient("app-id", "cf-secret").verify_webhook_signature
    r = client.post(
        "/api/payments/webhook",
        content=b"{}",
        headers={"x-webhook-signature": b"\xc3\xa9", "x-webhook-timestamp": "1"},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid webhook signature"


@pytest.mark.asyncio
async def test_unconfigured_cashfree_client_fails_fast():
    client = CashfreeClient(None, None)
    assert not client.is_configured
    with pytest.raises(GatewayError, match="not configured"):
        await client.fetch_order("AM_1")


@pytest.mark.asyncio
async def test_cashfree_client_surfaces_gateway_messages():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/payments"):
            return httpx.Response(200, json=[{"payment_status": "SUCCESS", "cf_payment_id": 9}])
        return httpx.Response(400, json={"message": "order_amount : invalid value provided", "code": "order_amount_invalid"})

    client = CashfreeClient("app-id", "cf-secret", transport=httpx.MockTransport(handler))
    assert client.base_url == "https://sandbox.cashfree.com/pg"

    with pytest.raises(GatewayError, match="order_amount") as exc_info:
        await client.create_order("AM_1", 0, {"customer_id": "u1"}, return_url="https://app/cb")
    assert exc_info.value.upstream_status == 400
    assert seen[0].headers["x-client-id"] == "app-id"
    assert seen[0].headers["x-api-version"] == "2023-08-01"
    assert json.loads(seen[0].content)["order_meta"] == {"return_url": "https://app/cb"}

    assert await client.fetch_payments("AM_1") == [{"payment_status": "SUCCESS", "cf_payment_id": 9}]
