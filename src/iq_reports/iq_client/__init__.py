"""Nexus IQ API client."""

from .client import IQClient, with_deadline
from .errors import (
    DecodeFailedError,
    IQError,
    NotFoundError,
    OperationCancelledError,
    RequestFailedError,
)
from .models import (
    LATE_STAGES,
    Application,
    Component,
    ComponentDetail,
    Organization,
    PolicyReportComponent,
    PolicyViolation,
    Report,
    ReportDiff,
    ReportInfo,
    ReportPolicy,
    ReportRaw,
    Stage,
)

__all__ = [
    "IQClient",
    "with_deadline",
    "DecodeFailedError",
    "IQError",
    "NotFoundError",
    "OperationCancelledError",
    "RequestFailedError",
    "LATE_STAGES",
    "Application",
    "Component",
    "ComponentDetail",
    "Organization",
    "PolicyReportComponent",
    "PolicyViolation",
    "Report",
    "ReportDiff",
    "ReportInfo",
    "ReportPolicy",
    "ReportRaw",
    "Stage",
]
