# src/alphamarket/infrastructure/db/seed.py
"""
Demo marketplace data: three approved advisors, one investor, their
strategies, a handful of calls, plans, content and complaint scores.

Runs only when the database has no advisors yet.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from alphamarket.domain.entities import (
    UserRole, StrategyType, StrategyStatus, CallStatus, TradeAction,
)
from alphamarket.interfaces.api.security.auth import hash_password
from .models import User, Strategy, Call, Plan, Content, Score
from .repository import UserRepository

log = logging.getLogger(__name__)


def _d(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


ADVISORS = [
    {
        "username": "stokwiz",
        "email": "gaurav@stokwiz.com",
        "phone": "+91 7259-667755",
        "company_name": "STOKWIZ",
        "overview": (
            "Welcome to STOKWIZ, a SEBI registered research house with a long record of helping "
            "Indian investors. We publish precise insights, well-founded calls and market analysis "
            "so our clients can navigate the markets with confidence."
        ),
        "themes": ["Equity", "F&O", "Growth"],
        "sebi_reg_number": "INH000012345",
        "active_since": _d(2023, 6, 17),
    },
    {
        "username": "finqoz",
        "email": "research@finqoz.com",
        "phone": "+91 9876-543210",
        "company_name": "FINQOZ ROBOADVISORY SERVICES PVT. LTD.",
        "overview": (
            "FINQOZ is a quantitative research and robo-advisory platform that builds data-backed "
            "stock baskets designed for long-term, consistent wealth creation."
        ),
        "themes": ["Equity", "F&O", "Value", "Momentum"],
        "sebi_reg_number": "INH000067890",
        "active_since": _d(2024, 12, 1),
    },
    {
        "username": "harshal_parmar",
        "email": "harshal@parmar.com",
        "phone": "+91 8765-432109",
        "company_name": "Parmar Capital Research",
        "overview": (
            "Parmar Capital Research provides data-driven insights combining fundamental and "
            "technical analysis for comprehensive stock coverage."
        ),
        "themes": ["Equity"],
        "sebi_reg_number": "INH000054321",
        "active_since": _d(2025, 1, 28),
    },
]

# (advisor username, name, type, horizon, volatility, benchmark, cagr, total recs, buy zone, min investment, themes, description)
STRATEGIES = [
    ("stokwiz", "Nifty and BankNifty Options", StrategyType.OPTION, "Intraday", "High", "Nifty 50", "-1.75", 12, 0, None,
     ["Equity", "F&O"], "Nifty and BankNifty options with precise entries, defined targets and strict stop losses."),
    ("stokwiz", "WIZ GROWTH LONG TERM", StrategyType.EQUITY, "Long Term", "Medium", "Nifty 50", "-1.75", 12, 0, "50000",
     ["Equity", "Growth", "Value"], "Long term positional calls on growth stocks with a 3 to 6 month horizon."),
    ("finqoz", "V8 Momentum Quant Basket", StrategyType.BASKET, "Positional", "Medium", "Nifty 50", None, 8, 0, "17000",
     ["Equity", "Momentum"], "A rule-based system that captures emerging trends and momentum across Indian equities."),
    ("finqoz", "Fire Wealth Compounder", StrategyType.BASKET, "Positional", "Medium", "Sensex", None, 5, 0, "25000",
     ["Equity", "Growth"], "A research-driven portfolio of early-stage, high-growth opportunities with a margin of safety."),
    ("harshal_parmar", "Equity Positional", StrategyType.EQUITY, "Positional", "Medium", "Nifty 50", "0", 15, 7, None,
     ["Equity"], "Medium to long-term positional equity ideas based on fundamental strength and technical trends."),
    ("stokwiz", "Growth Basket LT", StrategyType.BASKET, "Long Term", "Medium", "Nifty 50", None, 6, 0, None,
     ["Equity", "Growth"], "Growth stocks with high growth parameters for long-term wealth creation."),
    ("stokwiz", "Daywise", StrategyType.EQUITY, "Intraday", "High", "Nifty 50", None, 3, 0, None,
     ["Equity"], "Daily actionable intraday calls with tight risk management."),
]

# (strategy name, stock, range start, entry, sell, gain, status, call date, exit date)
CALLS = [
    ("WIZ GROWTH LONG TERM", "Oberoi Realty Limited", "1896", "1849", "1392", "-2.36", CallStatus.CLOSED, _d(2025, 7, 1), _d(2025, 8, 15)),
    ("WIZ GROWTH LONG TERM", "Mangalam Organics Limited", "595", "579", "1860", "-3.85", CallStatus.CLOSED, _d(2025, 6, 18), None),
    ("WIZ GROWTH LONG TERM", "ICICI Prudential Life Insurance Company Limited", "643", "642", "634.6", "1.17", CallStatus.CLOSED, _d(2025, 6, 24), None),
    ("WIZ GROWTH LONG TERM", "Hindustan Petroleum Corporation Limited", "410", "386.75", None, "-6.15", CallStatus.ACTIVE, _d(2025, 8, 8), None),
    ("Equity Positional", "RELIANCE INDUSTRIES LTD", "1345", "1345", None, "0.00", CallStatus.ACTIVE, _d(2026, 1, 28), None),
    ("Equity Positional", "RELIANCE INDUSTRIES LTD", "1385", "1380", "1400", "4.15", CallStatus.CLOSED, _d(2026, 1, 28), None),
    ("Equity Positional", "CENTRAL DEPO SER (I) LTD", "1225", "1100", None, "0.00", CallStatus.ACTIVE, _d(2026, 1, 28), None),
    ("Equity Positional", "ASTRAL LIMITED", "1400", "1400", None, "-0.28", CallStatus.ACTIVE, _d(2026, 1, 28), None),
]

# (advisor username, name, code, amount, duration days)
PLANS = [
    ("stokwiz", "365D", "000013", "9999", 365),
    ("stokwiz", "183D", "000014", "5999", 183),
    ("stokwiz", "92D", "000015", "2999", 92),
    ("stokwiz", "30D", "000016", "999", 30),
    ("stokwiz", "weekly", "000029", "49", 7),
    ("stokwiz", "Free Plan", "0000", "0", None),
    ("stokwiz", "Trial Plan", "00061", "1", 7),
    ("stokwiz", "Half Yearly", "00167", "12999", 183),
    ("finqoz", "Monthly", "F001", "2999", 30),
    ("finqoz", "Quarterly", "F002", "7999", 90),
    ("harshal_parmar", "Monthly", "P001", "1999", 30),
]

CONTENT = [
    ("stokwiz", "Morning Stock Market Commentary - 15th Feb 2025", "MarketUpdate", "Market analysis and key levels for the day."),
    ("stokwiz", "Indigo Paints - Analysis", "Learn", "Detailed analysis of Indigo Paints stock."),
    ("stokwiz", "Weekly Forecast 17 - 21 February 2025", "MarketUpdate", "Weekly market forecast covering Nifty, BankNifty."),
    ("stokwiz", "Analysis on Market Direction - 20th February 2025", "MarketUpdate", "Market direction analysis."),
    ("stokwiz", "Jyothy Labs - Research Report", "Learn", "Detailed research report on Jyothy Labs."),
    ("stokwiz", "Apply Stop Loss - Protect your trades", "Learn", "Guide on how to use stop loss effectively."),
    ("finqoz", "Quantamental Report Kei Industries", "Learn", "Quantamental analysis of Kei Industries."),
]

SCORES = [
    ("stokwiz", 0, 0, 0, 0, "Feb 2026"),
    ("finqoz", 0, 3, 3, 0, "Feb 2026"),
]


def _dec(value):
    return Decimal(value) if value is not None else None


def seed(session: Session) -> bool:
    """Insert the demo data set. Returns False when advisors already exist."""
    users = UserRepository(session)
    if users.count_advisors() > 0:
        log.info("Seed skipped: advisors already present.")
        return False

    advisor_hash = hash_password("advisor123")
    advisors = {}
    for profile in ADVISORS:
        advisors[profile["username"]] = users.add(User(
            password=advisor_hash,
            role=UserRole.ADVISOR,
            is_registered=True,
            is_approved=True,
            **profile,
        ))

    users.add(User(
        username="investor1",
        email="investor1@gmail.com",
        password=hash_password("investor123"),
        role=UserRole.INVESTOR,
    ))

    strategies = {}
    for (owner, name, stype, horizon, volatility, benchmark, cagr, total, buy_zone, min_inv, themes, desc) in STRATEGIES:
        strategy = Strategy(
            advisor_id=advisors[owner].id,
            name=name,
            type=stype,
            description=desc,
            status=StrategyStatus.PUBLISHED,
            theme=themes,
            horizon=horizon,
            volatility=volatility,
            benchmark=benchmark,
            cagr=_dec(cagr),
            total_recommendations=total,
            stocks_in_buy_zone=buy_zone,
            minimum_investment=_dec(min_inv),
        )
        session.add(strategy)
        strategies[name] = strategy
    session.flush()

    for (strategy_name, stock, range_start, entry, sell, gain, status, call_date, exit_date) in CALLS:
        session.add(Call(
            strategy_id=strategies[strategy_name].id,
            stock_name=stock,
            action=TradeAction.BUY,
            buy_range_start=_dec(range_start),
            entry_price=_dec(entry),
            sell_price=_dec(sell),
            gain_percent=_dec(gain),
            status=status,
            call_date=call_date,
            exit_date=exit_date,
        ))

    for (owner, name, code, amount, duration) in PLANS:
        session.add(Plan(advisor_id=advisors[owner].id, name=name, code=code, amount=Decimal(amount), duration_days=duration))

    for (owner, title, ctype, body) in CONTENT:
        session.add(Content(advisor_id=advisors[owner].id, title=title, type=ctype, body=body))

    for (owner, beginning, received, resolved, pending, month) in SCORES:
        session.add(Score(
            advisor_id=advisors[owner].id,
            beginning_of_month=beginning,
            received_during=received,
            resolved_during=resolved,
            pending_at_end=pending,
            pendency_reasons="",
            month=month,
        ))

    session.flush()
    log.info("Seed data inserted successfully")
    return True
