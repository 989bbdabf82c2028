"""Fan-out of report retrieval across stages, applications and organizations."""

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from ..iq_client import (
    LATE_STAGES,
    Application,
    Component,
    ComponentDetail,
    IQClient,
    IQError,
    OperationCancelledError,
    Report,
    ReportInfo,
    ReportPolicy,
    ReportRaw,
)
from .fetcher import ReportFetcher
from .resolver import ReportInfoResolver

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


@dataclass
class AggregateError:
    """A failure for one item of an aggregation."""

    source: str
    message: str


@dataclass
class AggregateResult(Generic[T]):
    """Items gathered by an aggregation plus the per-item failures it skipped."""

    items: list[T] = field(default_factory=list)
    errors: list[AggregateError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def partial(self) -> bool:
        """True when some sources failed, so ``items`` may under-report."""
        return bool(self.errors)

    def record(self, source: str, error: Exception) -> None:
        # Ensure we always have a useful error message
        message = str(error) or f"{type(error).__name__} (no details)"
        logger.warning("Skipping %s: %s", source, message)
        self.errors.append(AggregateError(source=source, message=message))


def first_info_per_stage(infos: Iterable[ReportInfo], stages: Iterable[str]) -> list[ReportInfo]:
    """Pick the first summary for each of *stages*, in stage order."""
    picked = []
    for stage in stages:
        for info in infos:
            if info.stage == stage:
                picked.append(info)
                break
    return picked


def _is_cancellation(error: Exception) -> bool:
    return isinstance(error, OperationCancelledError)


class ReportAggregator:
    """
    Gathers reports and components across an instance.

    Per-item fetches run concurrently, at most ``max_workers`` at a time.
    Result order follows input order. Failures of individual items are
    recorded on the returned :class:`AggregateResult` instead of aborting
    the whole aggregation; cancellation always propagates.
    """

    def __init__(
        self,
        client: IQClient,
        resolver: ReportInfoResolver | None = None,
        fetcher: ReportFetcher | None = None,
        max_workers: int = 4,
    ):
        self.client = client
        self.resolver = resolver or ReportInfoResolver(client)
        self.fetcher = fetcher or ReportFetcher(client, self.resolver)
        self.max_workers = max_workers
        # Shared by every fan-out, nested ones included
        self._slots = asyncio.Semaphore(max_workers)

    async def _fetch(self, coro: Awaitable[R]) -> R:
        """Await one IQ round trip once a worker slot is free."""
        async with self._slots:
            return await coro

    async def _gather(self, coros: Iterable[Awaitable[R]]) -> list[R]:
        """Run *coros* concurrently, preserving order."""
        tasks = [asyncio.ensure_future(c) for c in coros]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    # ==================== Report summaries ====================

    async def all_report_infos(self) -> list[ReportInfo]:
        """List the report summaries of every application."""
        return await self.resolver.all_report_infos()

    async def report_infos_for_organization(self, org_name: str) -> AggregateResult[ReportInfo]:
        """
        List the report summaries of every application in an organization.

        Raises:
            NotFoundError: If the organization does not exist
        """
        apps = await self.client.get_applications_by_organization(org_name)
        result: AggregateResult[ReportInfo] = AggregateResult()

        async def infos_for(app: Application) -> list[ReportInfo]:
            try:
                return await self._fetch(self.resolver.list_report_infos(app.public_id))
            except IQError as e:
                if _is_cancellation(e):
                    raise
                result.record(f"application {app.public_id}", e)
                return []

        for infos in await self._gather(infos_for(app) for app in apps):
            result.items.extend(infos)

        logger.info(
            "Organization %s: %d report summaries from %d applications",
            org_name,
            len(result.items),
            len(apps),
        )
        return result

    # ==================== Reports ====================

    async def all_reports(self) -> AggregateResult[Report]:
        """
        Materialize every report in the instance.

        A report whose raw or policy side fails to load is still included,
        with an empty payload on the failed side, and the failure is
        recorded in ``errors``.
        """
        infos = await self.all_report_infos()
        result: AggregateResult[Report] = AggregateResult()

        async def report_for(info: ReportInfo) -> Report:
            label = f"report {info.report_id} ({info.application_id}, {info.stage})"
            try:
                raw = await self._fetch(self.fetcher.fetch_raw(info))
            except IQError as e:
                if _is_cancellation(e):
                    raise
                result.record(f"raw {label}", e)
                raw = ReportRaw(report_info=info)
            try:
                policy = await self._fetch(self.fetcher.fetch_policy(info))
            except IQError as e:
                if _is_cancellation(e):
                    raise
                result.record(f"policy {label}", e)
                policy = ReportPolicy(report_info=info)
            return Report(policy=policy, raw=raw)

        result.items = await self._gather(report_for(info) for info in infos)
        return result

    async def reports_for_organization(self, org_name: str) -> AggregateResult[Report]:
        """
        Materialize the build, stage-release, release and operate reports
        of every application in an organization.

        A stage without a report is not an error. Other per-application or
        per-stage failures are recorded and skipped.

        Raises:
            NotFoundError: If the organization does not exist
        """
        apps = await self.client.get_applications_by_organization(org_name)
        result: AggregateResult[Report] = AggregateResult()

        async def infos_for(app: Application) -> list[ReportInfo]:
            try:
                infos = await self._fetch(self.resolver.list_report_infos(app.public_id))
            except IQError as e:
                if _is_cancellation(e):
                    raise
                result.record(f"application {app.public_id}", e)
                return []
            return first_info_per_stage(infos, LATE_STAGES)

        async def report_for(app_id: str, info: ReportInfo) -> Report | None:
            # Either failure drops the whole report
            try:
                policy = await self._fetch(self.fetcher.fetch_policy(info))
                raw = await self._fetch(self.fetcher.fetch_raw(info))
            except IQError as e:
                if _is_cancellation(e):
                    raise
                result.record(f"application {app_id} stage {info.stage}", e)
                return None
            return Report(policy=policy, raw=raw)

        per_app = await self._gather(infos_for(app) for app in apps)
        jobs = [
            report_for(app.public_id, info)
            for app, infos in zip(apps, per_app, strict=True)
            for info in infos
        ]
        result.items = [r for r in await self._gather(jobs) if r is not None]
        return result

    # ==================== Components ====================

    async def components_for_application(self, app_id: str) -> AggregateResult[ComponentDetail]:
        """
        Get detailed metadata for every component of an application.

        Components of the build, stage-release, release and operate raw
        reports are merged by hash (first occurrence wins) before the
        detail lookup.

        Raises:
            NotFoundError: If the application cannot be resolved
        """
        result: AggregateResult[ComponentDetail] = AggregateResult()
        listed = await self._fetch(self.resolver.list_report_infos(app_id))
        infos = first_info_per_stage(listed, LATE_STAGES)

        async def raw_for(info: ReportInfo) -> ReportRaw | None:
            try:
                return await self._fetch(self.fetcher.fetch_raw(info))
            except IQError as e:
                if _is_cancellation(e):
                    raise
                result.record(f"application {app_id} stage {info.stage}", e)
                return None

        seen: set[str] = set()
        components: list[Component] = []
        for raw in await self._gather(raw_for(info) for info in infos):
            if raw is None:
                continue
            for c in raw.components:
                if c.hash not in seen:
                    seen.add(c.hash)
                    components.append(Component.model_validate(c.model_dump()))

        if components:
            result.items = await self._fetch(self.client.get_component_details(components))
        return result

    async def all_components(self) -> AggregateResult[ComponentDetail]:
        """
        Get detailed metadata for every component in the instance,
        merged by hash across applications.
        """
        apps = await self.client.get_all_applications()
        result: AggregateResult[ComponentDetail] = AggregateResult()

        async def details_for(app: Application) -> list[ComponentDetail]:
            try:
                app_result = await self.components_for_application(app.public_id)
            except IQError as e:
                if _is_cancellation(e):
                    raise
                result.record(f"application {app.public_id}", e)
                return []
            result.errors.extend(app_result.errors)
            return app_result.items

        seen: set[str] = set()
        for details in await self._gather(details_for(app) for app in apps):
            for detail in details:
                if detail.component.hash not in seen:
                    seen.add(detail.component.hash)
                    result.items.append(detail)

        return result
