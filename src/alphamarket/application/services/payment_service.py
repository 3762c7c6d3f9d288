# src/alphamarket/application/services/payment_service.py
"""
Checkout through Cashfree and settlement into subscriptions.

An order moves PENDING -> ACTIVE (customer is on the payment page) -> PAID
or FAILED. Settlement is idempotent: whichever path sees PAID first (the
payment-callback poll, the webhook, or the scheduler's reconciliation) creates
the subscription, and later observers find it already linked.
"""

import asyncio
import json
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, ContextManager, Dict, List, Optional

from sqlalchemy.orm import Session

from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import PaymentStatus
from alphamarket.domain.errors import DomainError, GatewayError, NotFoundError
from alphamarket.domain.value_objects import Amount
from alphamarket.infrastructure.db.models import Payment, Plan, Strategy, User
from alphamarket.infrastructure.db.repository import PaymentRepository, PlanRepository, StrategyRepository
from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.infrastructure.payments.cashfree import CashfreeClient
from .subscription_service import SubscriptionService

log = logging.getLogger(__name__)

ORDER_PREFIX = "AM_"
DEFAULT_CUSTOMER_PHONE = "9999999999"
SUCCESS_WEBHOOK = "PAYMENT_SUCCESS_WEBHOOK"
RECONCILE_AFTER = timedelta(minutes=2)


def new_order_id() -> str:
    return f"{ORDER_PREFIX}{secrets.token_hex(10)}"


class PaymentService:
    def __init__(
        self,
        cashfree: CashfreeClient,
        subscription_service: SubscriptionService,
        public_base_url: str,
        max_attempts: int = 8,
        interval_seconds: float = 3.0,
        session_factory: Callable[[], ContextManager[Session]] = session_scope,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.cashfree = cashfree
        self.subscriptions = subscription_service
        self.public_base_url = public_base_url.rstrip("/")
        self.max_attempts = max(1, max_attempts)
        self.interval_seconds = interval_seconds
        self.session_factory = session_factory
        self._sleep = sleep

    # --- Checkout ---

    async def create_order(self, session: Session, user: User, strategy_id: str, plan_id: str) -> Dict[str, Any]:
        strategy = StrategyRepository(session).get(strategy_id)
        if not strategy:
            raise NotFoundError("Strategy not found")
        plan = PlanRepository(session).get(plan_id)
        if not plan:
            raise NotFoundError("Plan not found")
        if plan.advisor_id != strategy.advisor_id:
            raise DomainError("This plan is not offered for the selected strategy")
        # Free plans go through `subscribe`; the gateway rejects zero-value orders.
        amount = Amount(plan.amount)

        order_id = new_order_id()
        payment = PaymentRepository(session).add(Payment(
            order_id=order_id,
            user_id=user.id,
            strategy_id=strategy.id,
            plan_id=plan.id,
            advisor_id=strategy.advisor_id,
            amount=amount.value,
            currency="INR",
            status=PaymentStatus.PENDING,
        ))

        order = await self.cashfree.create_order(
            order_id=order_id,
            amount=float(amount),
            customer={
                "customer_id": user.id,
                "customer_name": user.display_name,
                "customer_email": user.email,
                "customer_phone": user.phone or DEFAULT_CUSTOMER_PHONE,
            },
            return_url=f"{self.public_base_url}/payment-callback?order_id={order_id}",
            notify_url=f"{self.public_base_url}/api/payments/webhook",
        )
        payment.payment_session_id = order.get("payment_session_id")
        session.flush()
        log.info(f"Order {order_id} created: user={user.id} plan={plan.id} amount={amount}")
        return {"orderId": order_id, "paymentSessionId": payment.payment_session_id}

    # --- Settlement ---

    async def _successful_payment(self, order_id: str) -> Optional[Dict[str, Any]]:
        try:
            attempts = await self.cashfree.fetch_payments(order_id)
        except GatewayError as e:
            log.warning(f"Could not load payment attempts for {order_id}: {e}")
            return None
        return next((p for p in attempts if str(p.get("payment_status", "")).upper() == "SUCCESS"), None)

    async def _settle(self, session: Session, payment: Payment, attempt: Optional[Dict[str, Any]] = None) -> None:
        if payment.status == PaymentStatus.PAID and payment.subscription_id:
            return
        if attempt is None:
            attempt = await self._successful_payment(payment.order_id)
        if attempt:
            payment.cf_payment_id = str(attempt.get("cf_payment_id") or "") or payment.cf_payment_id
            payment.payment_method = attempt.get("payment_group") or payment.payment_method
        payment.status = PaymentStatus.PAID
        payment.paid_at = payment.paid_at or utcnow()

        strategy = session.get(Strategy, payment.strategy_id) if payment.strategy_id else None
        if strategy is None:
            log.error(f"Order {payment.order_id} paid but its strategy no longer exists")
            session.flush()
            return
        plan = session.get(Plan, payment.plan_id) if payment.plan_id else None
        subscription = self.subscriptions.create_for_plan(session, payment.user_id, strategy, plan)
        payment.subscription_id = subscription.id
        session.flush()
        log.info(f"Order {payment.order_id} settled -> subscription {subscription.id}")

    async def _refresh(self, session: Session, payment: Payment) -> Dict[str, Any]:
        """Pull the order status from Cashfree and apply it to `payment`."""
        if payment.status == PaymentStatus.PAID and payment.subscription_id:
            return {"success": True, "orderStatus": PaymentStatus.PAID.value, "subscriptionId": payment.subscription_id}

        order = await self.cashfree.fetch_order(payment.order_id)
        order_status = str(order.get("order_status") or "").upper()

        if order_status == PaymentStatus.PAID.value:
            await self._settle(session, payment)
            return {"success": True, "orderStatus": order_status, "subscriptionId": payment.subscription_id}
        if order_status == PaymentStatus.ACTIVE.value:
            payment.status = PaymentStatus.ACTIVE
            session.flush()
            return {"success": False, "orderStatus": order_status}

        payment.status = PaymentStatus.FAILED
        session.flush()
        log.info(f"Order {payment.order_id} ended as {order_status or 'UNKNOWN'}")
        return {"success": False, "orderStatus": order_status or "FAILED"}

    def _owned_payment(self, session: Session, user_id: str, order_id: str) -> Payment:
        payment = PaymentRepository(session).find_by_order_id(order_id)
        if not payment or payment.user_id != user_id:
            raise NotFoundError("Payment not found")
        return payment

    async def verify(self, session: Session, user_id: str, order_id: str) -> Dict[str, Any]:
        return await self._refresh(session, self._owned_payment(session, user_id, order_id))

    async def await_settlement(self, user_id: str, order_id: str) -> Dict[str, Any]:
        """
        Poll `verify` while the order is still ACTIVE or the gateway errors,
        up to `max_attempts` times. Each attempt is its own unit of work so a
        settled payment is committed before the next poll.
        """
        result: Optional[Dict[str, Any]] = None
        last_error: Optional[GatewayError] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.session_factory() as session:
                    result = await self.verify(session, user_id, order_id)
            except GatewayError as e:
                last_error = e
                log.warning(f"Verify attempt {attempt}/{self.max_attempts} for {order_id} failed: {e}")
            else:
                if result["orderStatus"] != PaymentStatus.ACTIVE.value:
                    return result
            if attempt < self.max_attempts:
                await self._sleep(self.interval_seconds)

        if result is None and last_error is not None:
            raise last_error
        log.info(f"Gave up waiting for {order_id} after {self.max_attempts} attempts")
        return result

    async def handle_webhook(self, session: Session, raw_body: bytes, signature: Optional[str], timestamp: Optional[str]) -> Dict[str, Any]:
        if not self.cashfree.verify_webhook_signature(raw_body, signature, timestamp):
            log.warning("Rejected Cashfree webhook with an invalid signature")
            raise DomainError("Invalid webhook signature")
        try:
            event = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise DomainError("Malformed webhook body")

        if event.get("type") != SUCCESS_WEBHOOK:
            log.debug(f"Ignoring Cashfree webhook of type {event.get('type')}")
            return {"ok": True}

        data = event.get("data") or {}
        order_id = (data.get("order") or {}).get("order_id")
        payment = PaymentRepository(session).find_by_order_id(order_id) if order_id else None
        if not payment:
            log.warning(f"Webhook for unknown order {order_id}")
            return {"ok": True}
        await self._settle(session, payment, data.get("payment"))
        return {"ok": True}

    async def reconcile_pending(self, now: Optional[datetime] = None) -> int:
        """One verify for every PENDING/ACTIVE order older than two minutes."""
        cutoff = (now or utcnow()) - RECONCILE_AFTER
        settled = 0
        with self.session_factory() as session:
            for payment in PaymentRepository(session).list_unsettled_before(cutoff):
                try:
                    result = await self._refresh(session, payment)
                except GatewayError as e:
                    log.warning(f"Reconcile of {payment.order_id} failed: {e}")
                    continue
                if result["success"]:
                    settled += 1
        if settled:
            log.info(f"Reconciled {settled} paid orders")
        return settled

    # --- Listings ---

    def history(self, session: Session, user_id: str) -> List[Payment]:
        return PaymentRepository(session).list_by_user(user_id)

    def advisor_payments(self, session: Session, advisor_id: str) -> List[Dict[str, Any]]:
        rows = []
        for p in PaymentRepository(session).list_by_advisor(advisor_id):
            rows.append({
                "id": p.id,
                "orderId": p.order_id,
                "amount": float(p.amount),
                "currency": p.currency,
                "status": p.status.value,
                "paymentMethod": p.payment_method,
                "paidAt": p.paid_at.isoformat() if p.paid_at else None,
                "createdAt": p.created_at.isoformat() if p.created_at else None,
                "customerName": p.user.display_name if p.user else None,
                "customerEmail": p.user.email if p.user else None,
                "strategyName": p.strategy.name if p.strategy else None,
                "planName": p.plan.name if p.plan else None,
            })
        return rows
