# src/alphamarket/domain/value_objects.py
"""
Immutable, self-validating identifiers used by the eKYC and payment flows.

Each constructor normalises its input (strip separators, upper-case) and
raises `DomainError` when the value cannot be valid.
"""
from __future__ import annotations
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import DomainError

_AADHAAR_RE = re.compile(r"^[2-9][0-9]{11}$")
_PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
_OTP_RE = re.compile(r"^[0-9]{6}$")


class AadhaarNumber:
    """12-digit UIDAI number. Only the last four digits are ever persisted."""

    def __init__(self, value: str) -> None:
        cleaned = re.sub(r"[\s-]", "", str(value or ""))
        if not _AADHAAR_RE.match(cleaned):
            raise DomainError("Aadhaar number must be 12 digits")
        self.value = cleaned

    @property
    def last4(self) -> str:
        return self.value[-4:]

    @property
    def masked(self) -> str:
        return f"XXXX XXXX {self.last4}"

    def __str__(self) -> str:
        return self.masked

    def __repr__(self) -> str:
        return f"AadhaarNumber('{self.masked}')"


class PanNumber:
    """Income-tax PAN: five letters, four digits, one letter."""

    def __init__(self, value: str) -> None:
        cleaned = str(value or "").strip().upper()
        if not _PAN_RE.match(cleaned):
            raise DomainError("Invalid PAN format")
        self.value = cleaned

    @property
    def holder_type(self) -> str:
        # Fourth character encodes the holder: P=person, C=company, H=HUF...
        return self.value[3]

    def __str__(self) -> str:
        return self.value

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PanNumber) and other.value == self.value

    def __hash__(self) -> int:
        return hash(self.value)


class Otp:
    def __init__(self, value: str) -> None:
        cleaned = str(value or "").strip()
        if not _OTP_RE.match(cleaned):
            raise DomainError("OTP must be 6 digits")
        self.value = cleaned


class Amount:
    """A positive INR amount with paise precision."""

    def __init__(self, value: Any) -> None:
        try:
            d = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise DomainError(f"Invalid amount: {value!r}")
        if not d.is_finite() or d <= 0:
            raise DomainError("Amount must be greater than zero")
        self.value = d.quantize(Decimal("0.01"), ROUND_HALF_UP)

    def __float__(self) -> float:
        return float(self.value)

    def __str__(self) -> str:
        return f"{self.value:.2f}"
