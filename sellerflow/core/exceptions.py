"""
SellerFlow — Unified Custom Exceptions.
Each exception carries: message, error_code, http_status_code, optional detail dict.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

# ─────────────────────────────────────────────────────────────────────────────
# BASE
# ─────────────────────────────────────────────────────────────────────────────


class SellerFlowError(Exception):
    """Root exception for all SellerFlow errors."""

    http_status_code: int = 400
    error_code: str = "SELLERFLOW_ERROR"

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.detail = detail or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "detail": self.detail,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Event normalization & projection
# ─────────────────────────────────────────────────────────────────────────────


class InputDataError(SellerFlowError):
    """A single source record is malformed. Normalization drops it and continues."""

    http_status_code = 422
    error_code = "INPUT_DATA_ERROR"

    def __init__(self, source: str, record_id: Any, reason: str) -> None:
        self.source = source
        self.record_id = record_id
        self.reason = reason
        super().__init__(
            message=f"Malformed {source} record {record_id!r}: {reason}",
            detail={"source": source, "record_id": str(record_id), "reason": reason},
        )


class MissingBalanceError(SellerFlowError):
    http_status_code = 422
    error_code = "MISSING_CURRENT_BALANCE"

    def __init__(self) -> None:
        super().__init__(
            message="A current bank balance is required to project daily balances",
        )


class InvalidHorizonError(SellerFlowError):
    http_status_code = 422
    error_code = "INVALID_HORIZON"

    def __init__(self, horizon_days: int, max_days: int) -> None:
        self.horizon_days = horizon_days
        self.max_days = max_days
        super().__init__(
            message=f"Projection horizon {horizon_days} days is outside 0..{max_days}",
            detail={"horizon_days": horizon_days, "max_days": max_days},
        )


# ─────────────────────────────────────────────────────────────────────────────
# Payout forecasting
# ─────────────────────────────────────────────────────────────────────────────


class InsufficientHistoryError(SellerFlowError):
    """Raised when a forecast model lacks the minimum history it needs."""

    http_status_code = 422
    error_code = "INSUFFICIENT_HISTORY"

    def __init__(self, method: str, required: int, available: int) -> None:
        self.method = method
        self.required = required
        self.available = available
        super().__init__(
            message=(
                f"Forecast method {method!r} needs at least {required} historical "
                f"records, found {available}"
            ),
            detail={"method": method, "required": required, "available": available},
        )


class UnknownForecastModelError(SellerFlowError):
    http_status_code = 422
    error_code = "UNKNOWN_FORECAST_MODEL"

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(
            message=f"Unknown payout forecast model: {model!r}",
            detail={"model": model},
        )


class ConsistencyError(SellerFlowError):
    """Forecast replacement could not complete; nothing was applied."""

    http_status_code = 500
    error_code = "FORECAST_CONSISTENCY_ERROR"

    def __init__(self, account_id: str, reason: str) -> None:
        self.account_id = account_id
        self.reason = reason
        super().__init__(
            message=f"Forecast regeneration for account {account_id} rolled back: {reason}",
            detail={"account_id": account_id, "reason": reason},
        )


class AccountNotFoundError(SellerFlowError):
    http_status_code = 404
    error_code = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(
            message=f"No seller account found for id={account_id!r}",
            detail={"account_id": account_id},
        )

