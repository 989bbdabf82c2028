"""Pydantic models for IQ API entities."""

import logging
import re
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, PrivateAttr

logger = logging.getLogger(__name__)


class Stage(StrEnum):
    """Pipeline stages at which an evaluation snapshot is taken."""

    PROXY = "proxy"
    DEVELOP = "develop"
    BUILD = "build"
    STAGE_RELEASE = "stage-release"
    RELEASE = "release"
    OPERATE = "operate"
    CONTINUOUS_MONITORING = "continuous-monitoring"


# Stages walked by organization and component aggregation
LATE_STAGES: tuple[Stage, ...] = (
    Stage.BUILD,
    Stage.STAGE_RELEASE,
    Stage.RELEASE,
    Stage.OPERATE,
)


# ==================== Applications & Organizations ====================


class ApplicationTag(BaseModel):
    """Tag attached to an application."""

    id: str = ""
    tag_id: str = Field(default="", alias="tagId")
    application_id: str = Field(default="", alias="applicationId")

    model_config = {"populate_by_name": True}


class Application(BaseModel):
    """IQ application."""

    id: str = ""
    public_id: str = Field(default="", alias="publicId")
    name: str = ""
    organization_id: str = Field(default="", alias="organizationId")
    contact_user_name: str | None = Field(default=None, alias="contactUserName")
    application_tags: list[ApplicationTag] = Field(default_factory=list, alias="applicationTags")

    model_config = {"populate_by_name": True}


class IQCategory(BaseModel):
    """Category tag that can be assigned to an organization."""

    id: str = ""
    name: str = ""
    color: str = ""


class Organization(BaseModel):
    """IQ organization."""

    id: str = ""
    name: str = ""
    tags: list[IQCategory] = Field(default_factory=list)


# ==================== Components ====================


class ComponentIdentifier(BaseModel):
    """Format plus coordinates, e.g. maven groupId/artifactId/version."""

    format: str = ""
    coordinates: dict[str, Any] = Field(default_factory=dict)


class Component(BaseModel):
    """Component as it appears in reports and detail lookups."""

    hash: str = ""
    component_identifier: ComponentIdentifier | None = Field(
        default=None, alias="componentIdentifier"
    )
    package_url: str = Field(default="", alias="packageUrl")
    display_name: str = Field(default="", alias="displayName")
    proprietary: bool = False
    match_state: str = Field(default="", alias="matchState")
    pathnames: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class License(BaseModel):
    """License reference."""

    license_id: str = Field(default="", alias="licenseId")
    license_name: str = Field(default="", alias="licenseName")

    model_config = {"populate_by_name": True}


class LicenseData(BaseModel):
    """License information attached to a component."""

    declared_licenses: list[License] = Field(default_factory=list, alias="declaredLicenses")
    observed_licenses: list[License] = Field(default_factory=list, alias="observedLicenses")
    effective_licenses: list[License] = Field(default_factory=list, alias="effectiveLicenses")
    overridden_licenses: list[License] = Field(default_factory=list, alias="overriddenLicenses")
    status: str = ""

    model_config = {"populate_by_name": True}


class SecurityIssue(BaseModel):
    """Known vulnerability affecting a component."""

    source: str = ""
    reference: str = ""
    severity: float = 0.0
    status: str = ""
    url: str | None = None
    threat_category: str = Field(default="", alias="threatCategory")

    model_config = {"populate_by_name": True}


class SecurityData(BaseModel):
    """Container for a component's security issues."""

    security_issues: list[SecurityIssue] = Field(default_factory=list, alias="securityIssues")

    model_config = {"populate_by_name": True}


class ComponentDetail(BaseModel):
    """Detailed metadata from the component details endpoint."""

    component: Component = Field(default_factory=Component)
    match_state: str = Field(default="", alias="matchState")
    catalog_date: str = Field(default="", alias="catalogDate")
    relative_popularity: int | None = Field(default=None, alias="relativePopularity")
    license_data: LicenseData = Field(default_factory=LicenseData, alias="licenseData")
    security_data: SecurityData = Field(default_factory=SecurityData, alias="securityData")

    model_config = {"populate_by_name": True}


# ==================== Report summaries ====================


RFC3339_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)

REPORT_DATA_SEGMENTS = ("raw", "policy")


def parse_evaluation_date(value: str) -> datetime | None:
    """Parse an RFC3339 timestamp, returning None when it is not one."""
    if not value or not RFC3339_PATTERN.match(value):
        return None
    try:
        return datetime.fromisoformat(value.replace("z", "Z"))
    except ValueError:
        return None


def with_data_segment(url: str, segment: str) -> str:
    """
    Point a report data URL at its ``raw`` or ``policy`` variant.

    Only the terminal path segment is swapped, so application IDs such as
    ``policy-engine`` are left alone. URLs that end in neither segment are
    returned unchanged.
    """
    base, sep, last = url.rstrip("/").rpartition("/")
    if sep and last in REPORT_DATA_SEGMENTS:
        return f"{base}/{segment}"
    return url


class ReportInfo(BaseModel):
    """
    Summary record for one evaluation.

    The raw and policy data locations are derived from ``reportDataUrl``
    by swapping the terminal ``raw`` and ``policy`` path segment.
    """

    application_id: str = Field(default="", alias="applicationId")
    embeddable_report_html_url: str = Field(default="", alias="embeddableReportHtmlUrl")
    evaluation_date_str: str = Field(default="", alias="evaluationDate")
    report_data_url: str = Field(default="", alias="reportDataUrl")
    report_html_url: str = Field(default="", alias="reportHtmlUrl")
    report_pdf_url: str = Field(default="", alias="reportPdfUrl")
    stage: str = ""

    model_config = {"populate_by_name": True}

    _evaluation_date: datetime | None = PrivateAttr(default=None)

    @property
    def report_id(self) -> str:
        """Terminal path segment of the HTML report URL."""
        path = urlparse(self.report_html_url).path.rstrip("/")
        return path.rsplit("/", 1)[-1]

    @property
    def raw_data_url(self) -> str:
        """Location of the raw component inventory."""
        return with_data_segment(self.report_data_url, "raw")

    @property
    def policy_data_url(self) -> str:
        """Location of the policy violation report."""
        return with_data_segment(self.report_data_url, "policy")

    @property
    def has_evaluation_date(self) -> bool:
        """Whether ``evaluationDate`` holds a parseable timestamp."""
        return parse_evaluation_date(self.evaluation_date_str) is not None

    @property
    def evaluation_date(self) -> datetime:
        """
        Evaluation timestamp, parsed on first access.

        An unparseable value is replaced with the current time. Orderings
        built on this value can be distorted by that sentinel; check
        ``has_evaluation_date`` when that matters.
        """
        if self._evaluation_date is None:
            parsed = parse_evaluation_date(self.evaluation_date_str)
            if parsed is None:
                logger.warning(
                    "Could not parse evaluation date %r for report %s, using current time",
                    self.evaluation_date_str,
                    self.report_id or "<unknown>",
                )
                parsed = datetime.now(timezone.utc)
            self._evaluation_date = parsed
        return self._evaluation_date


# ==================== Raw reports ====================


class RawReportComponent(Component):
    """Component in a raw report, with license and security data."""

    license_data: LicenseData = Field(default_factory=LicenseData, alias="licenseData")
    security_data: SecurityData = Field(default_factory=SecurityData, alias="securityData")


class MatchSummary(BaseModel):
    """Known vs. total component counts."""

    known_component_count: int = Field(default=0, alias="knownComponentCount")
    total_component_count: int = Field(default=0, alias="totalComponentCount")

    model_config = {"populate_by_name": True}


class ReportRaw(BaseModel):
    """Full component inventory of one evaluation."""

    components: list[RawReportComponent] = Field(default_factory=list)
    match_summary: MatchSummary = Field(default_factory=MatchSummary, alias="matchSummary")
    report_info: ReportInfo = Field(default_factory=ReportInfo, alias="reportInfo")

    model_config = {"populate_by_name": True}


# ==================== Policy reports ====================


class ConstraintCondition(BaseModel):
    """Condition that triggered a constraint."""

    condition_reason: str = Field(default="", alias="conditionReason")
    condition_summary: str = Field(default="", alias="conditionSummary")

    model_config = {"populate_by_name": True}


class PolicyConstraint(BaseModel):
    """Policy constraint with its triggering conditions."""

    conditions: list[ConstraintCondition] = Field(default_factory=list)
    constraint_id: str = Field(default="", alias="constraintId")
    constraint_name: str = Field(default="", alias="constraintName")

    model_config = {"populate_by_name": True}


class PolicyViolation(BaseModel):
    """
    A policy violated by a component.

    ``grandfathered`` and ``waived`` are independent flags.
    """

    constraints: list[PolicyConstraint] = Field(default_factory=list)
    grandfathered: bool = False
    policy_id: str = Field(default="", alias="policyId")
    policy_name: str = Field(default="", alias="policyName")
    policy_threat_category: str = Field(default="", alias="policyThreatCategory")
    policy_threat_level: int = Field(default=0, alias="policyThreatLevel")
    waived: bool = False

    model_config = {"populate_by_name": True}


class PolicyReportComponent(Component):
    """Component with its policy violations."""

    violations: list[PolicyViolation] = Field(default_factory=list)


class PolicyReportCounts(BaseModel):
    """Summary counts of a policy report."""

    exactly_matched_component_count: int = Field(default=0, alias="exactlyMatchedComponentCount")
    grandfathered_policy_violation_count: int = Field(
        default=0, alias="grandfatheredPolicyViolationCount"
    )
    partially_matched_component_count: int = Field(
        default=0, alias="partiallyMatchedComponentCount"
    )
    total_component_count: int = Field(default=0, alias="totalComponentCount")

    model_config = {"populate_by_name": True}


class ReportPolicy(BaseModel):
    """Policy violations per component for one evaluation."""

    application: Application = Field(default_factory=Application)
    components: list[PolicyReportComponent] = Field(default_factory=list)
    counts: PolicyReportCounts = Field(default_factory=PolicyReportCounts)
    report_time: int = Field(default=0, alias="reportTime")  # epoch millis
    report_title: str = Field(default="", alias="reportTitle")
    report_info: ReportInfo = Field(default_factory=ReportInfo, alias="reportInfo")

    model_config = {"populate_by_name": True}


# ==================== Combined reports ====================


class Report(BaseModel):
    """Policy and raw report of the same evaluation."""

    policy: ReportPolicy = Field(default_factory=ReportPolicy, alias="policyReport")
    raw: ReportRaw = Field(default_factory=ReportRaw, alias="rawReport")

    model_config = {"populate_by_name": True}

    @property
    def report_info(self) -> ReportInfo:
        return self.raw.report_info


class ReportDiff(BaseModel):
    """Differences between an earlier and a later report."""

    reports: list[Report] = Field(default_factory=list)
    waived: list[PolicyReportComponent] = Field(default_factory=list)
    fixed: list[PolicyReportComponent] = Field(default_factory=list)

    @property
    def earlier(self) -> Report:
        return self.reports[0]

    @property
    def later(self) -> Report:
        return self.reports[1]
