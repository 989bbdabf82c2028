"""Retrieval of raw and policy reports."""

import logging

from ..iq_client import IQClient, IQError, Report, ReportInfo, ReportPolicy, ReportRaw
from .resolver import ReportInfoResolver

logger = logging.getLogger(__name__)

REST_REPORTS_RAW = "api/v2/applications/{}/reports/{}/raw"
REST_REPORTS_POLICY = "api/v2/applications/{}/reports/{}/policy"


def raw_report_path(app_id: str, report_id: str) -> str:
    return REST_REPORTS_RAW.format(app_id, report_id)


def policy_report_path(app_id: str, report_id: str) -> str:
    return REST_REPORTS_POLICY.format(app_id, report_id)


class ReportFetcher:
    """Materializes full reports from their summaries."""

    def __init__(self, client: IQClient, resolver: ReportInfoResolver | None = None):
        self.client = client
        self.resolver = resolver or ReportInfoResolver(client)

    # ==================== By URL ====================

    async def fetch_raw_by_url(self, url: str) -> ReportRaw:
        """Fetch and decode the raw report at *url*."""
        try:
            return await self.client.get_json(url, ReportRaw)
        except IQError as e:
            logger.debug("Could not retrieve raw report at %s: %s", url, e)
            raise

    async def fetch_policy_by_url(self, url: str) -> ReportPolicy:
        """Fetch and decode the policy report at *url*."""
        try:
            return await self.client.get_json(url, ReportPolicy)
        except IQError as e:
            logger.debug("Could not retrieve policy report at %s: %s", url, e)
            raise

    # ==================== By summary ====================

    async def fetch_raw(self, info: ReportInfo) -> ReportRaw:
        """
        Fetch the raw report described by *info*.

        The result carries *info* as its summary; it is not re-derived
        from the payload.
        """
        report = await self.fetch_raw_by_url(info.raw_data_url)
        report.report_info = info
        return report

    async def fetch_policy(self, info: ReportInfo) -> ReportPolicy:
        """Fetch the policy report described by *info*."""
        report = await self.fetch_policy_by_url(info.policy_data_url)
        report.report_info = info
        return report

    # ==================== By stage ====================

    async def fetch_raw_by_stage(self, app_id: str, stage: str) -> ReportRaw:
        """Fetch an application's raw report for a stage."""
        info = await self.resolver.find_report_info(app_id, stage)
        return await self.fetch_raw(info)

    async def fetch_policy_by_stage(self, app_id: str, stage: str) -> ReportPolicy:
        """Fetch an application's policy report for a stage."""
        info = await self.resolver.find_report_info(app_id, stage)
        return await self.fetch_policy(info)

    async def fetch_report(self, app_id: str, stage: str) -> Report:
        """
        Fetch the policy and raw report of an application for a stage.

        The first failure aborts the operation; no partial report is returned.
        """
        info = await self.resolver.find_report_info(app_id, stage)
        policy = await self.fetch_policy(info)
        raw = await self.fetch_raw(info)
        return Report(policy=policy, raw=raw)

    # ==================== By report ID ====================

    async def fetch_report_by_id(self, app_id: str, report_id: str) -> Report:
        """
        Fetch the policy and raw report of an application by report ID.

        After both fetches the summaries are listed again and the matching
        one is stamped onto both sides. If the ID is no longer listed the
        sides keep an empty summary.
        """
        policy = await self.fetch_policy_by_url(policy_report_path(app_id, report_id))
        raw = await self.fetch_raw_by_url(raw_report_path(app_id, report_id))

        for info in await self.resolver.list_report_infos(app_id):
            if info.report_id == report_id:
                policy.report_info = info
                raw.report_info = info
                break
        else:
            logger.warning("Report %s of %s is not among its summaries", report_id, app_id)

        return Report(policy=policy, raw=raw)
