"""Differences between two reports of the same application."""

import logging

from ..iq_client import PolicyReportComponent, Report, ReportDiff
from .fetcher import ReportFetcher

logger = logging.getLogger(__name__)


def order_reports(first: Report, second: Report) -> tuple[Report, Report]:
    """
    Return ``(earlier, later)`` by raw-side evaluation date.

    *first* is earlier only when both dates are known and *second*'s is
    strictly later. Ties and unknown dates put *second* first.
    """
    info1 = first.raw.report_info
    info2 = second.raw.report_info
    if (
        info1.has_evaluation_date
        and info2.has_evaluation_date
        and info2.evaluation_date > info1.evaluation_date
    ):
        return first, second
    return second, first


class _ComponentSet:
    """Insertion-ordered components, unique by hash."""

    def __init__(self) -> None:
        self.items: list[PolicyReportComponent] = []
        self._hashes: set[str] = set()

    def add(self, component: PolicyReportComponent) -> None:
        if component.hash not in self._hashes:
            self._hashes.add(component.hash)
            self.items.append(component)


def compare_reports(older: Report, newer: Report) -> ReportDiff:
    """
    Classify the policy components of *older* against *newer*.

    A component is fixed when its hash is gone from *newer*, or when one
    of its violations has no violation with the same policy ID on the
    matching *newer* component. A *newer* component is waived when it
    carries a waived violation for a policy that the *older* component
    violated. Both lists hold each component once, in first-seen order.
    """
    newer_components = {c.hash: c for c in newer.policy.components}
    fixed = _ComponentSet()
    waived = _ComponentSet()

    for comp1 in older.policy.components:
        comp2 = newer_components.get(comp1.hash)
        if comp2 is None:
            fixed.add(comp1)
            continue

        for violation1 in comp1.violations:
            matches = [v for v in comp2.violations if v.policy_id == violation1.policy_id]
            if not matches:
                fixed.add(comp1)
                continue
            if any(v.waived for v in matches):
                waived.add(comp2)

    logger.debug(
        "Report diff: %d fixed, %d waived out of %d components",
        len(fixed.items),
        len(waived.items),
        len(older.policy.components),
    )
    return ReportDiff(reports=[older, newer], fixed=fixed.items, waived=waived.items)


class ReportDiffer:
    """Fetches two reports by ID and compares them in chronological order."""

    def __init__(self, fetcher: ReportFetcher):
        self.fetcher = fetcher

    async def diff_reports(self, app_id: str, report_id_1: str, report_id_2: str) -> ReportDiff:
        """
        Compare two reports of an application.

        The second report is only fetched once the first one succeeded.
        Whichever argument order is used, ``reports`` lists the earlier
        evaluation first.
        """
        report1 = await self.fetcher.fetch_report_by_id(app_id, report_id_1)
        report2 = await self.fetcher.fetch_report_by_id(app_id, report_id_2)
        return compare_reports(*order_reports(report1, report2))
