"""
SellerFlow — Forecast Accuracy Analyzer
Scores stored payout forecasts against the settlements that replaced them.
Outliers are excluded by IQR on the absolute percentage error.
"""

from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sellerflow.core.decimal_utils import HUNDRED, ZERO, display_round, mean, safe_percentage

logger = logging.getLogger(__name__)

IQR_MULTIPLIER = Decimal("1.5")
MIN_RETAINED_RECORDS = 3
RECENT_COMPARISONS = 5


def forecast_accuracy_percentage(forecast: Decimal, actual: Decimal) -> Decimal:
    """100 minus the absolute percentage error, floored at 0."""
    ape = safe_percentage(actual - forecast, actual) or ZERO
    return display_round(max(ZERO, HUNDRED - ape))


@dataclass
class MatchedForecast:
    payout_date: date
    forecast_amount: Decimal
    actual_amount: Decimal
    modeling_method: Optional[str] = None
    forecast_accuracy_percentage: Optional[Decimal] = None

    @property
    def absolute_error(self) -> Decimal:
        return abs(self.actual_amount - self.forecast_amount)

    @property
    def percentage_error(self) -> Decimal:
        return safe_percentage(self.actual_amount - self.forecast_amount, self.actual_amount) or ZERO

    @property
    def bias(self) -> Decimal:
        # positive = over-forecast
        return self.forecast_amount - self.actual_amount

    @property
    def accuracy(self) -> Decimal:
        if self.forecast_accuracy_percentage is not None:
            return self.forecast_accuracy_percentage
        return forecast_accuracy_percentage(self.forecast_amount, self.actual_amount)


@dataclass
class MethodAccuracy:
    method: str
    count: int
    average_accuracy: Decimal


@dataclass
class MonthlyAccuracy:
    month: str  # YYYY-MM
    count: int
    accuracy: Decimal


@dataclass
class AccuracyMetrics:
    total_comparisons: int
    records_used: int
    outliers_excluded: int
    overall_accuracy: Decimal
    average_absolute_error: Decimal
    mape: Decimal
    average_bias: Decimal
    bias_percentage: Decimal
    improvement_rate: Decimal
    by_method: Dict[str, MethodAccuracy] = field(default_factory=dict)
    trends: List[MonthlyAccuracy] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    recent_comparisons: List[MatchedForecast] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        return self.total_comparisons > 0

    @property
    def outlier_filter_applied(self) -> bool:
        return self.outliers_excluded > 0


# ─── Outlier exclusion ────────────────────────────────────────────────────────


def exclude_outliers(
    records: Sequence[MatchedForecast],
) -> Tuple[List[MatchedForecast], int]:
    """
    Drop records whose percentage error lies outside [Q1 - 1.5·IQR, Q3 + 1.5·IQR].
    Quartiles are linearly interpolated. When fewer than three records would
    remain, the unfiltered set is returned instead.
    Returns (retained, excluded_count).
    """
    records = list(records)
    if len(records) < MIN_RETAINED_RECORDS:
        logger.info(
            "Only %d forecast comparisons; skipping outlier exclusion", len(records)
        )
        return records, 0

    errors = sorted(r.percentage_error for r in records)
    q1, _, q3 = statistics.quantiles(errors, n=4, method="inclusive")
    iqr = q3 - q1
    lower = q1 - IQR_MULTIPLIER * iqr
    upper = q3 + IQR_MULTIPLIER * iqr

    kept = [r for r in records if lower <= r.percentage_error <= upper]
    if len(kept) < MIN_RETAINED_RECORDS:
        logger.info(
            "Outlier exclusion left %d of %d records; using the full set",
            len(kept),
            len(records),
        )
        return records, 0

    excluded = len(records) - len(kept)
    if excluded:
        logger.debug(
            "Excluded %d outliers (APE bounds %.2f%% .. %.2f%%)", excluded, lower, upper
        )
    return kept, excluded


# ─── Aggregations ─────────────────────────────────────────────────────────────


def _by_method(records: List[MatchedForecast]) -> Dict[str, MethodAccuracy]:
    groups: Dict[str, List[Decimal]] = {}
    for r in records:
        groups.setdefault(r.modeling_method or "unknown", []).append(r.accuracy)
    return {
        method: MethodAccuracy(
            method=method,
            count=len(values),
            average_accuracy=display_round(mean(values)),
        )
        for method, values in groups.items()
    }


def _monthly_trends(records: List[MatchedForecast]) -> List[MonthlyAccuracy]:
    groups: Dict[str, List[Decimal]] = {}
    for r in records:
        groups.setdefault(r.payout_date.strftime("%Y-%m"), []).append(r.accuracy)
    return [
        MonthlyAccuracy(month=month, count=len(values), accuracy=display_round(mean(values)))
        for month, values in sorted(groups.items())
    ]


def _improvement_rate(records: List[MatchedForecast]) -> Decimal:
    """% change of mean accuracy, most recent half vs. the earlier half."""
    ordered = sorted(records, key=lambda r: r.payout_date)
    half = len(ordered) // 2
    if half == 0:
        return ZERO
    earlier = mean(r.accuracy for r in ordered[: len(ordered) - half])
    recent = mean(r.accuracy for r in ordered[len(ordered) - half :])
    if earlier <= ZERO:
        return ZERO
    return (recent - earlier) / earlier * HUNDRED


def build_insights(
    overall_accuracy: Decimal,
    bias_percentage: Decimal,
    improvement_rate: Decimal,
    mape: Decimal,
) -> List[str]:
    """Display-only commentary derived from fixed thresholds."""
    insights: List[str] = []

    if overall_accuracy >= 90:
        insights.append("Excellent! Your forecasts are highly accurate (90%+).")
    elif overall_accuracy >= 80:
        insights.append("Good accuracy. Your forecasts are reliable (80-90%).")
    elif overall_accuracy >= 70:
        insights.append(
            "Moderate accuracy. Consider adjusting risk settings or providing more history."
        )
    else:
        insights.append(
            "Low accuracy. Forecasts need more historical data or adjusted parameters."
        )

    if abs(bias_percentage) > 10:
        if bias_percentage > 0:
            insights.append(
                f"Consistent over-forecasting by {abs(bias_percentage):.1f}%. "
                "Consider a more conservative risk adjustment."
            )
        else:
            insights.append(
                f"Consistent under-forecasting by {abs(bias_percentage):.1f}%. "
                "Consider a more aggressive risk adjustment."
            )
    else:
        insights.append("Well-balanced forecasts with minimal systematic bias.")

    if improvement_rate > 5:
        insights.append(f"Accuracy is improving over time (+{improvement_rate:.1f}%).")
    elif improvement_rate < -5:
        insights.append(
            f"Accuracy declining over time ({improvement_rate:.1f}%). "
            "The model may need recalibration."
        )

    if mape < 10:
        insights.append("Low average error rate (<10% MAPE). Forecasts are very precise.")
    elif mape > 20:
        insights.append("High variability in forecasts (>20% MAPE). More data may improve precision.")

    return insights


def _empty_metrics() -> AccuracyMetrics:
    return AccuracyMetrics(
        total_comparisons=0,
        records_used=0,
        outliers_excluded=0,
        overall_accuracy=ZERO,
        average_absolute_error=ZERO,
        mape=ZERO,
        average_bias=ZERO,
        bias_percentage=ZERO,
        improvement_rate=ZERO,
        insights=["No forecast comparisons available yet."],
    )


# ─── Public entry point ───────────────────────────────────────────────────────


def compute_accuracy_metrics(matched: Sequence[MatchedForecast]) -> AccuracyMetrics:
    if not matched:
        return _empty_metrics()

    retained, excluded = exclude_outliers(matched)

    overall_accuracy = mean(r.accuracy for r in retained)
    average_absolute_error = mean(r.absolute_error for r in retained)
    mape = mean(r.percentage_error for r in retained)
    average_bias = mean(r.bias for r in retained)
    mean_actual = mean(r.actual_amount for r in retained)
    bias_percentage = average_bias / mean_actual * HUNDRED if mean_actual != ZERO else ZERO
    improvement_rate = _improvement_rate(retained)

    recent = sorted(matched, key=lambda r: r.payout_date, reverse=True)[:RECENT_COMPARISONS]

    return AccuracyMetrics(
        total_comparisons=len(matched),
        records_used=len(retained),
        outliers_excluded=excluded,
        overall_accuracy=display_round(overall_accuracy),
        average_absolute_error=display_round(average_absolute_error),
        mape=display_round(mape),
        average_bias=display_round(average_bias),
        bias_percentage=display_round(bias_percentage),
        improvement_rate=display_round(improvement_rate),
        by_method=_by_method(retained),
        trends=_monthly_trends(retained),
        insights=build_insights(overall_accuracy, bias_percentage, improvement_rate, mape),
        recent_comparisons=recent,
    )
