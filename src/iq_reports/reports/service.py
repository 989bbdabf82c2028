"""Wires the IQ client and report components together from configuration."""

import logging
from typing import Any

import httpx

from ..config import AppConfig
from ..iq_client import (
    ComponentDetail,
    IQClient,
    Organization,
    Report,
    ReportDiff,
    ReportInfo,
    with_deadline,
)
from .aggregator import AggregateResult, ReportAggregator
from .diff import ReportDiffer
from .fetcher import ReportFetcher
from .resolver import ReportInfoResolver

logger = logging.getLogger(__name__)


class ReportService:
    """
    Entry point for report retrieval.

    Every operation runs under the configured deadline, if any, and raises
    :class:`~iq_reports.iq_client.OperationCancelledError` when it expires.
    """

    def __init__(self, config: AppConfig, transport: httpx.AsyncBaseTransport | None = None):
        """
        Initialize the service.

        Args:
            config: Application configuration
            transport: Optional httpx transport passed to the IQ client
        """
        self.config = config
        self.client = IQClient(
            url=config.iq.url,
            username=config.iq.username,
            password=config.iq.password,
            timeout=config.iq.timeout,
            transport=transport,
        )
        self.resolver = ReportInfoResolver(self.client)
        self.fetcher = ReportFetcher(self.client, self.resolver)
        self.aggregator = ReportAggregator(
            self.client,
            self.resolver,
            self.fetcher,
            max_workers=config.reports.max_workers,
        )
        self.differ = ReportDiffer(self.fetcher)

    async def close(self) -> None:
        """Clean up resources."""
        await self.client.close()

    async def __aenter__(self) -> "ReportService":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _run(self, coro: Any) -> Any:
        return await with_deadline(coro, self.config.reports.deadline_seconds)

    async def verify_connection(self) -> list[Organization]:
        """List organizations to confirm the server and credentials work."""
        return await self._run(self.client.get_all_organizations())

    async def report_infos(self, app_id: str) -> list[ReportInfo]:
        return await self._run(self.resolver.list_report_infos(app_id))

    async def report(self, app_id: str, stage: str) -> Report:
        return await self._run(self.fetcher.fetch_report(app_id, stage))

    async def report_by_id(self, app_id: str, report_id: str) -> Report:
        return await self._run(self.fetcher.fetch_report_by_id(app_id, report_id))

    async def diff(self, app_id: str, report_id_1: str, report_id_2: str) -> ReportDiff:
        return await self._run(self.differ.diff_reports(app_id, report_id_1, report_id_2))

    async def organization_infos(self, org_name: str) -> AggregateResult[ReportInfo]:
        return await self._run(self.aggregator.report_infos_for_organization(org_name))

    async def organization_reports(self, org_name: str) -> AggregateResult[Report]:
        return await self._run(self.aggregator.reports_for_organization(org_name))

    async def all_reports(self) -> AggregateResult[Report]:
        return await self._run(self.aggregator.all_reports())

    async def components(self, app_id: str | None = None) -> AggregateResult[ComponentDetail]:
        """Component details for one application, or for the whole instance."""
        if app_id:
            return await self._run(self.aggregator.components_for_application(app_id))
        return await self._run(self.aggregator.all_components())
