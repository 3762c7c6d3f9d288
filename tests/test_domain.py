import pytest
from datetime import datetime, timezone
from decimal import Decimal

from alphamarket.domain.clock import in_square_off_window, next_ist_6am, as_utc
from alphamarket.domain.entities import (
    ClosedTrade, EkycProgress, EkycStep, RiskCategory,
    gain_percent, is_hit_rate_strategy, live_call_buckets,
)
from alphamarket.domain.errors import DomainError
from alphamarket.domain.value_objects import AadhaarNumber, Amount, Otp, PanNumber


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


# --- Gain arithmetic ---

def test_gain_percent_buy_call():
    assert gain_percent("Buy", "100", "110") == Decimal("10.00")
    assert gain_percent("Buy", 200, 207) == Decimal("3.50")


def test_gain_percent_sell_call_profits_from_a_falling_price():
    assert gain_percent("Sell", 100, 90) == Decimal("10.00")
    assert gain_percent("Sell", 100, 110) == Decimal("-10.00")


def test_gain_percent_without_a_usable_entry_is_zero():
    assert gain_percent("Buy", None, 110) == Decimal("0.00")
    assert gain_percent("Buy", 0, 110) == Decimal("0.00")
    assert gain_percent("Buy", "n/a", 110) == Decimal("0.00")


@pytest.mark.parametrize("score,category", [
    (0, RiskCategory.CONSERVATIVE),
    (20, RiskCategory.CONSERVATIVE),
    (21, RiskCategory.MODERATELY_CONSERVATIVE),
    (40, RiskCategory.MODERATELY_CONSERVATIVE),
    (41, RiskCategory.MODERATE),
    (60, RiskCategory.MODERATE),
    (61, RiskCategory.AGGRESSIVE),
    (80, RiskCategory.AGGRESSIVE),
    (81, RiskCategory.VERY_AGGRESSIVE),
])
def test_risk_category_thresholds(score, category):
    assert RiskCategory.from_score(score) == category


def test_hit_rate_strategies_are_fno_or_intraday():
    assert is_hit_rate_strategy("Option", None)
    assert is_hit_rate_strategy("Future", "Positional")
    assert is_hit_rate_strategy("Equity", "Intraday")
    assert not is_hit_rate_strategy("Equity", "Swing")


def test_live_call_buckets_overlap():
    assert live_call_buckets("Future", "Intraday") == ["Intraday", "F&O"]
    assert live_call_buckets("CommodityFuture", "Positional") == ["Positional", "Commodities"]
    assert live_call_buckets("Basket", "Long Term") == ["Positional", "Basket"]
    assert live_call_buckets("Equity", None) == []


def test_closed_trade_to_dict():
    trade = ClosedTrade(kind="call", id="c1", label="TCS", gain_percent=Decimal("4.25"), exit_date=utc(2026, 3, 2))
    assert trade.is_profitable
    assert trade.to_dict() == {
        "type": "call", "id": "c1", "label": "TCS", "gainPercent": 4.25,
        "exitDate": "2026-03-02T00:00:00+00:00",
    }


# --- eKYC step machine ---

def test_ekyc_starts_at_aadhaar_and_blocks_pan():
    progress = EkycProgress()
    assert progress.step == EkycStep.AADHAAR
    with pytest.raises(DomainError, match="Complete Aadhaar verification"):
        progress.ensure_can_verify_pan()


def test_ekyc_moves_to_pan_then_complete():
    progress = EkycProgress(aadhaar_status="verified", pan_status="failed")
    assert progress.step == EkycStep.PAN
    progress.ensure_can_verify_pan()
    with pytest.raises(DomainError):
        progress.ensure_can_send_aadhaar_otp()

    done = EkycProgress(aadhaar_status="verified", pan_status="verified")
    assert done.step == EkycStep.COMPLETE
    assert done.is_complete
    with pytest.raises(DomainError, match="already verified"):
        done.ensure_can_verify_pan()


# --- Value objects ---

def test_aadhaar_number_is_normalised_and_masked():
    aadhaar = AadhaarNumber("2345 6789-0123")
    assert aadhaar.value == "234567890123"
    assert aadhaar.last4 == "0123"
    assert str(aadhaar) == "XXXX XXXX 0123"
    assert "2345" not in repr(aadhaar)


@pytest.mark.parametrize("raw", ["123456789012", "23456789012", "2345678901234", "abcd efgh ijkl", None])
def test_invalid_aadhaar_numbers(raw):
    with pytest.raises(DomainError):
        AadhaarNumber(raw)


def test_pan_number():
    pan = PanNumber(" abcpe1234f ")
    assert pan.value == "ABCPE1234F"
    assert pan.holder_type == "P"
    assert pan == PanNumber("ABCPE1234F")
    with pytest.raises(DomainError, match="Invalid PAN"):
        PanNumber("ABCP1234F")


def test_otp_must_be_six_digits():
    assert Otp(" 123456 ").value == "123456"
    for bad in ("12345", "1234567", "12a456"):
        with pytest.raises(DomainError):
            Otp(bad)


def test_amount_is_positive_with_paise_precision():
    assert Amount("99.999").value == Decimal("100.00")
    assert float(Amount(499)) == 499.0
    assert str(Amount("12.5")) == "12.50"
    for bad in (0, "-1", "abc", "NaN"):
        with pytest.raises(DomainError):
            Amount(bad)


# --- Clock ---

def test_next_ist_6am_same_day_and_next_day():
    # 05:30 IST -> 06:00 IST the same day
    assert next_ist_6am(utc(2026, 1, 1, 0, 0)) == utc(2026, 1, 1, 0, 30)
    # 06:30 IST -> 06:00 IST tomorrow
    assert next_ist_6am(utc(2026, 1, 1, 1, 0)) == utc(2026, 1, 2, 0, 30)


@pytest.mark.parametrize("now,expected", [
    (utc(2026, 5, 4, 9, 54), False),  # 15:24 IST
    (utc(2026, 5, 4, 9, 55), True),   # 15:25 IST
    (utc(2026, 5, 4, 10, 0), True),   # 15:30 IST
    (utc(2026, 5, 4, 10, 1), False),  # 15:31 IST
])
def test_square_off_window(now, expected):
    assert in_square_off_window(now) is expected


def test_as_utc_treats_naive_datetimes_as_utc():
    assert as_utc(datetime(2026, 1, 1, 12, 0)) == utc(2026, 1, 1, 12, 0)
    assert as_utc(None) is None
