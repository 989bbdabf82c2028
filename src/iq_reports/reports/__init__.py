"""Report retrieval, aggregation and differencing."""

from .aggregator import AggregateError, AggregateResult, ReportAggregator
from .diff import ReportDiffer, compare_reports, order_reports
from .fetcher import ReportFetcher, policy_report_path, raw_report_path
from .resolver import ReportInfoResolver
from .service import ReportService

__all__ = [
    "AggregateError",
    "AggregateResult",
    "ReportAggregator",
    "ReportDiffer",
    "compare_reports",
    "order_reports",
    "ReportFetcher",
    "policy_report_path",
    "raw_report_path",
    "ReportInfoResolver",
    "ReportService",
]
