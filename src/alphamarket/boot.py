# File: src/alphamarket/boot.py
"""
Composition root: builds the gateways and services and wires them together.
The resulting dict is stored on `app.state.services`; tests pass overrides
(fake gateways, an in-memory session factory) by keyword.
"""

import logging
from typing import Any, Dict

from alphamarket.config import settings
from alphamarket.application.services import (
    AuthService,
    NotificationService,
    StrategyService,
    SubscriptionService,
    EkycService,
    RiskProfileService,
    PaymentService,
    PerformanceService,
    InvestorService,
    AdvisorService,
    ContentService,
    ReportService,
    BasketService,
    MarketDataService,
    AdminService,
)
from alphamarket.infrastructure.db.performance_repository import PerformanceRepository
from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.infrastructure.kyc.sandbox import SandboxKycClient
from alphamarket.infrastructure.market.groww_client import GrowwClient
from alphamarket.infrastructure.notify.email import SendGridMailer
from alphamarket.infrastructure.notify.push import WebPushSender
from alphamarket.infrastructure.payments.cashfree import CashfreeClient
from alphamarket.infrastructure.sched.scheduler import Scheduler

log = logging.getLogger(__name__)


def build_gateways() -> Dict[str, Any]:
    return {
        "cashfree_client": CashfreeClient(
            settings.CASHFREE_APP_ID,
            settings.CASHFREE_SECRET_KEY,
            env=settings.CASHFREE_ENV,
            api_version=settings.CASHFREE_API_VERSION,
        ),
        "kyc_client": SandboxKycClient(
            settings.SANDBOX_API_KEY,
            settings.SANDBOX_API_SECRET,
            base_url=settings.SANDBOX_BASE_URL,
        ),
        "groww_client": GrowwClient(settings.GROWW_API_KEY, settings.GROWW_API_SECRET),
        "push_sender": WebPushSender(settings.VAPID_PUBLIC_KEY, settings.VAPID_PRIVATE_KEY, settings.VAPID_SUBJECT),
        "mailer": SendGridMailer(settings.SENDGRID_API_KEY, settings.SENDGRID_FROM_EMAIL),
    }


def build_services(**overrides: Any) -> Dict[str, Any]:
    """Build and wire all application services and dependencies."""
    log.info("Building application services...")
    services: Dict[str, Any] = {}

    try:
        gateways = build_gateways()
        gateways.update({k: v for k, v in overrides.items() if k in gateways})
        services.update(gateways)
        session_factory = overrides.get("session_factory", session_scope)

        # --- Core Services ---
        strategy_service = StrategyService()
        subscription_service = SubscriptionService()
        services["strategy_service"] = strategy_service
        services["subscription_service"] = subscription_service
        services["auth_service"] = AuthService(
            gateways["mailer"],
            admin_email=settings.ADMIN_NOTIFICATION_EMAIL,
            public_base_url=settings.PUBLIC_BASE_URL,
            reset_ttl_minutes=settings.PASSWORD_RESET_TTL_MINUTES,
        )
        services["notification_service"] = NotificationService(gateways["push_sender"], session_factory=session_factory)
        services["ekyc_service"] = EkycService(gateways["kyc_client"], subscription_service)
        services["risk_profile_service"] = RiskProfileService(subscription_service)
        services["payment_service"] = PaymentService(
            gateways["cashfree_client"],
            subscription_service,
            public_base_url=settings.PUBLIC_BASE_URL,
            max_attempts=settings.PAYMENT_VERIFY_MAX_ATTEMPTS,
            interval_seconds=settings.PAYMENT_VERIFY_INTERVAL_SECONDS,
            session_factory=session_factory,
            **({"sleep": overrides["sleep"]} if "sleep" in overrides else {}),
        )
        services["performance_service"] = PerformanceService(repo_class=PerformanceRepository)
        services["investor_service"] = InvestorService()
        services["advisor_service"] = AdvisorService()
        services["content_service"] = ContentService()
        services["report_service"] = ReportService()
        services["basket_service"] = BasketService(strategy_service)
        services["market_data_service"] = MarketDataService(gateways["groww_client"])
        services["admin_service"] = AdminService()

        # --- Background jobs ---
        services["scheduler"] = Scheduler(
            strategy_service,
            subscription_service,
            services["payment_service"],
            interval_seconds=settings.SCHEDULER_INTERVAL_SECONDS,
            session_factory=session_factory,
        )

        log.info("All services built and wired successfully.")
        return services

    except Exception as e:
        log.critical(f"Service building failed: {e}", exc_info=True)
        raise
