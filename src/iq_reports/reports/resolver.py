"""Report summary lookup by application, stage and report ID."""

import logging

from ..iq_client import IQClient, NotFoundError, ReportInfo

logger = logging.getLogger(__name__)

REST_REPORTS = "api/v2/reports/applications"


class ReportInfoResolver:
    """Lists and resolves report summaries (one per stage) for applications."""

    def __init__(self, client: IQClient):
        self.client = client

    async def all_report_infos(self) -> list[ReportInfo]:
        """Get the report summaries of every application in the instance."""
        return await self.client.get_json_list(REST_REPORTS, ReportInfo)

    async def list_report_infos(self, app_id: str) -> list[ReportInfo]:
        """
        List the report summaries retained for an application.

        Args:
            app_id: Public ID of the application

        Returns:
            Summaries in server order; empty when the application has no history

        Raises:
            NotFoundError: If the application cannot be resolved
            RequestFailedError: If the listing call fails
        """
        app = await self.client.get_application_by_public_id(app_id)
        infos = await self.client.get_json_list(f"{REST_REPORTS}/{app.id}", ReportInfo)
        logger.debug("Application %s has %d report summaries", app_id, len(infos))
        return infos

    async def find_report_info(self, app_id: str, stage: str) -> ReportInfo:
        """
        Find the report summary of an application for a stage.

        The first match in server order wins.

        Raises:
            NotFoundError: If the application has no report for *stage*
        """
        for info in await self.list_report_infos(app_id):
            if info.stage == stage:
                return info
        raise NotFoundError(f"Did not find {stage} report for '{app_id}'")

    async def find_report_info_by_id(self, app_id: str, report_id: str) -> ReportInfo:
        """
        Find the report summary of an application by report ID.

        Raises:
            NotFoundError: If no retained report has that ID
        """
        for info in await self.list_report_infos(app_id):
            if info.report_id == report_id:
                return info
        raise NotFoundError(f"Did not find report '{report_id}' for '{app_id}'")
