# src/alphamarket/domain/errors.py
"""
Error taxonomy shared by services and routers.

Services raise these; `interfaces/api/main.py` maps each class to an HTTP
status. They all subclass `ValueError` so callers that only care about
"the request was rejected" can keep catching `ValueError`.
"""


class DomainError(ValueError):
    """The request is well-formed but violates a business rule (HTTP 400)."""
    status_code = 400


class NotFoundError(DomainError):
    status_code = 404


class PermissionDeniedError(DomainError):
    status_code = 403


class GatewayError(DomainError):
    """An upstream provider (payments, KYC, market data) failed or refused."""
    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class AuthenticationError(DomainError):
    status_code = 401
