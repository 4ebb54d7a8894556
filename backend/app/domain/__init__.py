"""Domain contracts and shared types."""

from backend.app.domain.contracts import (  # noqa: F401
    DailyMetricsSnapshot,
    DateRange,
    MetricsDelta,
    MetricsSummary,
    PeriodMetrics,
    RebuildResult,
    RiskSummary,
    Subscription,
    Transaction,
)
