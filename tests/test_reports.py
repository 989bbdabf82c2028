"""Tests for report summary resolution and report fetching."""

import pytest

from conftest import FakeIQ, policy_component, raw_component, violation

from iq_reports.iq_client import (
    DecodeFailedError,
    NotFoundError,
    ReportInfo,
    RequestFailedError,
    Stage,
)
from iq_reports.reports import (
    ReportFetcher,
    ReportInfoResolver,
    policy_report_path,
    raw_report_path,
)


@pytest.fixture
def app_with_reports(fake_iq: FakeIQ) -> FakeIQ:
    fake_iq.add_application("app1")
    fake_iq.add_report(
        "app1",
        "build",
        "r-build",
        "2024-01-01T00:00:00Z",
        raw_components=[raw_component("h1"), raw_component("h2")],
        policy_components=[policy_component("h1", violation("p1"))],
    )
    fake_iq.add_report(
        "app1",
        "release",
        "r-release",
        "2024-02-01T00:00:00Z",
        raw_components=[raw_component("h2")],
        policy_components=[policy_component("h2", violation("p2", waived=True))],
    )
    return fake_iq


class TestResolver:
    async def test_lists_infos_by_internal_id(
        self, app_with_reports: FakeIQ, resolver: ReportInfoResolver
    ):
        infos = await resolver.list_report_infos("app1")

        assert [i.report_id for i in infos] == ["r-build", "r-release"]
        assert "api/v2/reports/applications/app1-internal" in app_with_reports.paths()

    async def test_no_history_is_empty_not_error(
        self, fake_iq: FakeIQ, resolver: ReportInfoResolver
    ):
        fake_iq.add_application("fresh")

        assert await resolver.list_report_infos("fresh") == []

    async def test_unknown_application(self, fake_iq: FakeIQ, resolver: ReportInfoResolver):
        fake_iq.route("GET", "api/v2/applications?publicId=ghost", {"applications": []})

        with pytest.raises(NotFoundError):
            await resolver.list_report_infos("ghost")

    async def test_listing_failure(self, fake_iq: FakeIQ, resolver: ReportInfoResolver):
        fake_iq.add_application("app1")
        fake_iq.route("GET", "api/v2/reports/applications/app1-internal", "down", status=503)

        with pytest.raises(RequestFailedError):
            await resolver.list_report_infos("app1")

    async def test_find_by_stage(self, app_with_reports: FakeIQ, resolver: ReportInfoResolver):
        info = await resolver.find_report_info("app1", Stage.RELEASE)

        assert info.report_id == "r-release"

    async def test_find_by_stage_first_match_wins(
        self, app_with_reports: FakeIQ, resolver: ReportInfoResolver
    ):
        app_with_reports.add_report("app1", "build", "r-build-dup")

        info = await resolver.find_report_info("app1", "build")

        assert info.report_id == "r-build"

    async def test_find_missing_stage(self, app_with_reports: FakeIQ, resolver: ReportInfoResolver):
        with pytest.raises(NotFoundError, match="operate"):
            await resolver.find_report_info("app1", Stage.OPERATE)

    async def test_find_by_report_id(self, app_with_reports: FakeIQ, resolver: ReportInfoResolver):
        info = await resolver.find_report_info_by_id("app1", "r-build")
        assert info.stage == "build"

        with pytest.raises(NotFoundError):
            await resolver.find_report_info_by_id("app1", "r-gone")

    async def test_all_report_infos(self, app_with_reports: FakeIQ, resolver: ReportInfoResolver):
        app_with_reports.add_application("app2")
        app_with_reports.add_report("app2", "build", "r-app2")

        infos = await resolver.all_report_infos()

        assert {i.report_id for i in infos} == {"r-build", "r-release", "r-app2"}


class TestFetcher:
    def test_report_paths(self):
        assert raw_report_path("app1", "abc") == "api/v2/applications/app1/reports/abc/raw"
        assert policy_report_path("app1", "abc") == "api/v2/applications/app1/reports/abc/policy"

    async def test_fetch_raw_stamps_summary(
        self, app_with_reports: FakeIQ, resolver: ReportInfoResolver, fetcher: ReportFetcher
    ):
        info = await resolver.find_report_info("app1", "build")

        raw = await fetcher.fetch_raw(info)

        assert [c.hash for c in raw.components] == ["h1", "h2"]
        assert raw.match_summary.total_component_count == 2
        assert raw.report_info == info

    async def test_fetch_policy_rewrites_raw_url(
        self, app_with_reports: FakeIQ, resolver: ReportInfoResolver, fetcher: ReportFetcher
    ):
        info = await resolver.find_report_info("app1", "build")

        policy = await fetcher.fetch_policy(info)

        assert app_with_reports.paths()[-1] == "api/v2/applications/app1/reports/r-build/policy"
        assert policy.components[0].violations[0].policy_id == "p1"
        assert policy.report_info == info

    async def test_fetch_raw_malformed(self, fake_iq: FakeIQ, fetcher: ReportFetcher):
        fake_iq.route("GET", "api/v2/applications/app1/reports/bad/raw", b"[1, 2")
        info = ReportInfo(report_data_url="api/v2/applications/app1/reports/bad/raw")

        with pytest.raises(DecodeFailedError):
            await fetcher.fetch_raw(info)

    async def test_fetch_raw_and_policy_by_stage(
        self, app_with_reports: FakeIQ, fetcher: ReportFetcher
    ):
        raw = await fetcher.fetch_raw_by_stage("app1", "release")
        policy = await fetcher.fetch_policy_by_stage("app1", "release")

        assert [c.hash for c in raw.components] == ["h2"]
        assert policy.components[0].violations[0].waived is True
        assert raw.report_info.report_id == policy.report_info.report_id == "r-release"

    async def test_fetch_for_application_named_like_a_data_segment(
        self, fake_iq: FakeIQ, fetcher: ReportFetcher
    ):
        fake_iq.add_application("policy-engine")
        fake_iq.add_report(
            "policy-engine",
            "build",
            "r1",
            raw_components=[raw_component("h1")],
            policy_components=[policy_component("h1", violation("p1"))],
        )

        report = await fetcher.fetch_report("policy-engine", "build")

        assert [c.hash for c in report.raw.components] == ["h1"]
        assert report.policy.components[0].violations[0].policy_id == "p1"

    async def test_fetch_report(self, app_with_reports: FakeIQ, fetcher: ReportFetcher):
        report = await fetcher.fetch_report("app1", "build")

        assert report.policy.report_info.report_id == "r-build"
        assert report.raw.report_info.report_id == "r-build"
        assert report.policy.application.public_id == "app1"

    async def test_fetch_report_aborts_on_policy_failure(
        self, app_with_reports: FakeIQ, fetcher: ReportFetcher
    ):
        app_with_reports.route(
            "GET", "api/v2/applications/app1/reports/r-build/policy", "oops", status=500
        )

        with pytest.raises(RequestFailedError):
            await fetcher.fetch_report("app1", "build")

        assert "api/v2/applications/app1/reports/r-build/raw" not in app_with_reports.paths()

    async def test_fetch_report_missing_stage(
        self, app_with_reports: FakeIQ, fetcher: ReportFetcher
    ):
        with pytest.raises(NotFoundError):
            await fetcher.fetch_report("app1", "operate")

    async def test_fetch_report_by_id_restamps_summary(
        self, app_with_reports: FakeIQ, fetcher: ReportFetcher
    ):
        report = await fetcher.fetch_report_by_id("app1", "r-release")

        assert report.raw.report_info.stage == "release"
        assert report.policy.report_info.stage == "release"
        assert app_with_reports.paths()[-1] == "api/v2/reports/applications/app1-internal"

    async def test_fetch_report_by_unlisted_id_keeps_empty_summary(
        self, app_with_reports: FakeIQ, fetcher: ReportFetcher
    ):
        app_with_reports.route(
            "GET", "api/v2/applications/app1/reports/r-old/raw", {"components": []}
        )
        app_with_reports.route(
            "GET", "api/v2/applications/app1/reports/r-old/policy", {"components": []}
        )

        report = await fetcher.fetch_report_by_id("app1", "r-old")

        assert report.raw.report_info == ReportInfo()
        assert not report.raw.report_info.has_evaluation_date

    async def test_fetch_report_by_id_missing_report(
        self, app_with_reports: FakeIQ, fetcher: ReportFetcher
    ):
        with pytest.raises(RequestFailedError):
            await fetcher.fetch_report_by_id("app1", "r-nope")

    async def test_stage_and_id_fetch_agree(
        self, app_with_reports: FakeIQ, fetcher: ReportFetcher
    ):
        by_stage = await fetcher.fetch_report("app1", "build")
        by_id = await fetcher.fetch_report_by_id("app1", by_stage.raw.report_info.report_id)

        assert by_id.model_dump() == by_stage.model_dump()
