"""Shared fixtures: an in-memory IQ server behind httpx.MockTransport."""

from typing import Any

import httpx
import pytest

from iq_reports.config import AppConfig, IQConfig, ReportsConfig
from iq_reports.iq_client import IQClient
from iq_reports.reports import ReportAggregator, ReportFetcher, ReportInfoResolver

BASE_URL = "http://iq.test"


def violation(policy_id: str, waived: bool = False, grandfathered: bool = False) -> dict[str, Any]:
    return {
        "policyId": policy_id,
        "policyName": f"Policy {policy_id}",
        "policyThreatCategory": "SECURITY",
        "policyThreatLevel": 7,
        "waived": waived,
        "grandfathered": grandfathered,
        "constraints": [
            {
                "constraintId": f"{policy_id}-c1",
                "constraintName": "Severity >= 7",
                "conditions": [
                    {
                        "conditionSummary": "Security Vulnerability Severity >= 7",
                        "conditionReason": "Found 1 Security Vulnerability",
                    }
                ],
            }
        ],
    }


def policy_component(component_hash: str, *violations: dict[str, Any]) -> dict[str, Any]:
    return {
        "hash": component_hash,
        "displayName": f"component-{component_hash}",
        "packageUrl": f"pkg:maven/org.example/{component_hash}@1.0.0",
        "componentIdentifier": {
            "format": "maven",
            "coordinates": {
                "groupId": "org.example",
                "artifactId": component_hash,
                "version": "1.0.0",
            },
        },
        "violations": list(violations),
    }


def raw_component(component_hash: str) -> dict[str, Any]:
    return {
        "hash": component_hash,
        "displayName": f"component-{component_hash}",
        "packageUrl": f"pkg:maven/org.example/{component_hash}@1.0.0",
        "matchState": "exact",
        "licenseData": {
            "declaredLicenses": [{"licenseId": "Apache-2.0", "licenseName": "Apache 2.0"}],
            "effectiveLicenses": [{"licenseId": "Apache-2.0", "licenseName": "Apache 2.0"}],
            "status": "Open",
        },
        "securityData": {
            "securityIssues": [
                {
                    "source": "cve",
                    "reference": "CVE-2021-44228",
                    "severity": 10.0,
                    "status": "Open",
                    "url": "http://iq.test/ui/links/vln/CVE-2021-44228",
                    "threatCategory": "critical",
                }
            ]
        },
    }


def report_info(app_id: str, stage: str, report_id: str, evaluation_date: str) -> dict[str, Any]:
    return {
        "applicationId": f"{app_id}-internal",
        "embeddableReportHtmlUrl": f"{BASE_URL}/ui/links/application/{app_id}/report/{report_id}/embeddable",
        "evaluationDate": evaluation_date,
        "reportDataUrl": f"api/v2/applications/{app_id}/reports/{report_id}/raw",
        "reportHtmlUrl": f"{BASE_URL}/ui/links/application/{app_id}/report/{report_id}",
        "reportPdfUrl": f"{BASE_URL}/ui/links/application/{app_id}/report/{report_id}/pdf",
        "stage": stage,
    }


class FakeIQ:
    """Routes requests to canned JSON bodies keyed by method and path."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.applications: list[dict[str, Any]] = []
        self.organizations: list[dict[str, Any]] = []
        self.infos: dict[str, list[dict[str, Any]]] = {}
        self._sync_listings()

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.raw_path.decode().lstrip("/"))
        if key not in self.routes:
            return httpx.Response(404, text=f"no route for {key}")
        status, body = self.routes[key]
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        # Late-bound so tests can swap the handler after the client exists
        return httpx.MockTransport(lambda request: self.handler(request))

    def route(self, method: str, path: str, body: Any, status: int = 200) -> None:
        self.routes[(method, path)] = (status, body)

    def paths(self) -> list[str]:
        return [r.url.raw_path.decode().lstrip("/") for r in self.requests]

    def _sync_listings(self) -> None:
        self.route("GET", "api/v2/applications", {"applications": self.applications})
        self.route("GET", "api/v2/organizations", {"organizations": self.organizations})
        self.route(
            "GET",
            "api/v2/reports/applications",
            [info for infos in self.infos.values() for info in infos],
        )

    def add_organization(self, name: str, org_id: str) -> None:
        self.organizations.append({"id": org_id, "name": name, "tags": []})
        self._sync_listings()

    def add_application(self, public_id: str, org_id: str = "org-1") -> None:
        app = {
            "id": f"{public_id}-internal",
            "publicId": public_id,
            "name": public_id.title(),
            "organizationId": org_id,
        }
        self.applications.append(app)
        self.infos.setdefault(public_id, [])
        self.route("GET", f"api/v2/applications?publicId={public_id}", {"applications": [app]})
        self.route(
            "GET", f"api/v2/reports/applications/{public_id}-internal", self.infos[public_id]
        )
        self._sync_listings()

    def add_report(
        self,
        app_id: str,
        stage: str,
        report_id: str,
        evaluation_date: str = "2024-01-01T00:00:00Z",
        raw_components: list[dict[str, Any]] | None = None,
        policy_components: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        info = report_info(app_id, stage, report_id, evaluation_date)
        self.infos[app_id].append(info)
        raw_components = raw_components or []
        policy_components = policy_components or []
        self.route(
            "GET",
            f"api/v2/applications/{app_id}/reports/{report_id}/raw",
            {
                "components": raw_components,
                "matchSummary": {
                    "knownComponentCount": len(raw_components),
                    "totalComponentCount": len(raw_components),
                },
            },
        )
        self.route(
            "GET",
            f"api/v2/applications/{app_id}/reports/{report_id}/policy",
            {
                "application": {
                    "id": f"{app_id}-internal",
                    "publicId": app_id,
                    "name": app_id.title(),
                    "organizationId": "org-1",
                },
                "components": policy_components,
                "counts": {
                    "exactlyMatchedComponentCount": len(policy_components),
                    "grandfatheredPolicyViolationCount": 0,
                    "partiallyMatchedComponentCount": 0,
                    "totalComponentCount": len(policy_components),
                },
                "reportTime": 1704067200000,
                "reportTitle": f"{app_id} {stage}",
            },
        )
        self._sync_listings()
        return info


@pytest.fixture
def fake_iq() -> FakeIQ:
    return FakeIQ()


@pytest.fixture
async def client(fake_iq: FakeIQ):
    async with IQClient(BASE_URL, "admin", "admin123", transport=fake_iq.transport) as c:
        yield c


@pytest.fixture
def resolver(client: IQClient) -> ReportInfoResolver:
    return ReportInfoResolver(client)


@pytest.fixture
def fetcher(client: IQClient, resolver: ReportInfoResolver) -> ReportFetcher:
    return ReportFetcher(client, resolver)


@pytest.fixture
def aggregator(
    client: IQClient, resolver: ReportInfoResolver, fetcher: ReportFetcher
) -> ReportAggregator:
    return ReportAggregator(client, resolver, fetcher, max_workers=2)


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        iq=IQConfig(url=BASE_URL, username="admin", password="admin123"),
        reports=ReportsConfig(max_workers=2),
    )
