# File: src/alphamarket/application/services/__init__.py

from .auth_service import AuthService
from .notification_service import NotificationService
from .strategy_service import StrategyService
from .subscription_service import SubscriptionService
from .ekyc_service import EkycService
from .risk_profile_service import RiskProfileService
from .payment_service import PaymentService
from .performance_service import PerformanceService
from .investor_service import InvestorService
from .advisor_service import AdvisorService
from .content_service import ContentService
from .report_service import ReportService
from .basket_service import BasketService
from .market_data_service import MarketDataService
from .admin_service import AdminService

__all__ = [
    "AuthService",
    "NotificationService",
    "StrategyService",
    "SubscriptionService",
    "EkycService",
    "RiskProfileService",
    "PaymentService",
    "PerformanceService",
    "InvestorService",
    "AdvisorService",
    "ContentService",
    "ReportService",
    "BasketService",
    "MarketDataService",
    "AdminService",
]
