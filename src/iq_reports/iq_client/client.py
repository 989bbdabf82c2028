"""Nexus IQ API client."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .errors import (
    DecodeFailedError,
    NotFoundError,
    OperationCancelledError,
    RequestFailedError,
)
from .models import Application, Component, ComponentDetail, Organization

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")

logger = logging.getLogger(__name__)

REST_APPLICATION = "api/v2/applications"
REST_ORGANIZATION = "api/v2/organizations"
REST_COMPONENT_DETAILS = "api/v2/components/details"


async def with_deadline(coro: Awaitable[R], seconds: float | None) -> R:
    """
    Await *coro*, aborting it once *seconds* have elapsed.

    Raises:
        OperationCancelledError: If the deadline expires first
    """
    if seconds is None:
        return await coro
    try:
        async with asyncio.timeout(seconds):
            return await coro
    except TimeoutError:
        raise OperationCancelledError(f"Operation exceeded deadline of {seconds}s") from None


def decode_json(body: bytes, model: type[T], source: str) -> T:
    """Decode a JSON document into *model*."""
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        raise DecodeFailedError(f"Could not decode {model.__name__} from {source}: {e}") from e


def decode_json_list(body: bytes, model: type[T], source: str) -> list[T]:
    """Decode a JSON array into a list of *model*."""
    try:
        return TypeAdapter(list[model]).validate_json(body)  # type: ignore[valid-type]
    except ValidationError as e:
        raise DecodeFailedError(
            f"Could not decode list of {model.__name__} from {source}: {e}"
        ) from e


class IQClient:
    """Client for interacting with the Nexus IQ REST API."""

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the IQ client.

        Args:
            url: Base URL of the IQ server (e.g., http://localhost:8070)
            username: IQ user name
            password: IQ password or user token passcode
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests to fake the server
        """
        self.base_url = url.rstrip("/") + "/"
        self.username = username
        self.password = password
        self.timeout = timeout
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.username, self.password),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> IQClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> tuple[bytes, int]:
        """Make an HTTP request to the API and return the body and status."""
        logger.debug("API Request: %s %s", method, path)

        try:
            response = await self.client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise RequestFailedError(f"Request timed out: {method} {path}") from e
        except httpx.TransportError as e:
            raise RequestFailedError(f"Request failed: {method} {path}: {e}") from e

        if response.status_code == 401:
            raise RequestFailedError("Unauthorized - check your IQ credentials", 401)
        if response.status_code == 403:
            raise RequestFailedError("Forbidden - insufficient permissions", 403)
        if response.status_code == 404:
            raise RequestFailedError(f"Not found: {path}", 404, response.text)
        if response.status_code >= 400:
            raise RequestFailedError(
                f"API error: {response.status_code} for {method} {path}",
                response.status_code,
                response.text,
            )

        return response.content, response.status_code

    async def get(self, path: str, params: dict[str, Any] | None = None) -> tuple[bytes, int]:
        """Make a GET request."""
        return await self._request("GET", path, params=params)

    async def post(self, path: str, body: Any = None) -> tuple[bytes, int]:
        """Make a POST request."""
        return await self._request("POST", path, json=body)

    async def put(self, path: str, body: Any = None) -> tuple[bytes, int]:
        """Make a PUT request."""
        return await self._request("PUT", path, json=body)

    async def delete(self, path: str) -> int:
        """Make a DELETE request."""
        _, status = await self._request("DELETE", path)
        return status

    async def get_json(
        self, path: str, model: type[T], params: dict[str, Any] | None = None
    ) -> T:
        """GET *path* and decode the body into *model*."""
        body, _ = await self.get(path, params)
        return decode_json(body, model, path)

    async def get_json_list(self, path: str, model: type[T]) -> list[T]:
        """GET *path* and decode the body into a list of *model*."""
        body, _ = await self.get(path)
        return decode_json_list(body, model, path)

    # ==================== Applications ====================

    async def get_application_by_public_id(self, public_id: str) -> Application:
        """
        Resolve an application by its public ID.

        Raises:
            NotFoundError: If no application has that public ID
        """
        resp = await self.get_json(
            REST_APPLICATION, _ApplicationsResponse, params={"publicId": public_id}
        )
        if not resp.applications:
            raise NotFoundError(f"Application '{public_id}' not found")
        return resp.applications[0]

    async def get_all_applications(self) -> list[Application]:
        """Get every application in the instance."""
        resp = await self.get_json(REST_APPLICATION, _ApplicationsResponse)
        return resp.applications

    async def get_applications_by_organization(self, organization_name: str) -> list[Application]:
        """Get the applications owned by the named organization."""
        org = await self.get_organization_by_name(organization_name)
        apps = await self.get_all_applications()
        return [app for app in apps if app.organization_id == org.id]

    # ==================== Organizations ====================

    async def get_all_organizations(self) -> list[Organization]:
        """Get every organization in the instance."""
        resp = await self.get_json(REST_ORGANIZATION, _OrganizationsResponse)
        return resp.organizations

    async def get_organization_by_name(self, organization_name: str) -> Organization:
        """
        Resolve an organization by name.

        Raises:
            NotFoundError: If no organization has that name
        """
        for org in await self.get_all_organizations():
            if org.name == organization_name:
                return org
        raise NotFoundError(f"Organization '{organization_name}' not found")

    # ==================== Components ====================

    async def get_component_details(self, components: Sequence[Component]) -> list[ComponentDetail]:
        """Look up detailed metadata for the given components."""
        payload = {
            "components": [
                c.model_dump(
                    include={"hash", "component_identifier", "package_url"},
                    by_alias=True,
                    exclude_defaults=True,
                )
                for c in components
            ]
        }
        logger.debug("Requesting details for %d components", len(components))
        body, _ = await self.post(REST_COMPONENT_DETAILS, payload)
        resp = decode_json(body, _ComponentDetailsResponse, REST_COMPONENT_DETAILS)
        return resp.component_details


class _ApplicationsResponse(BaseModel):
    applications: list[Application] = []


class _OrganizationsResponse(BaseModel):
    organizations: list[Organization] = []


class _ComponentDetailsResponse(BaseModel):
    component_details: list[ComponentDetail] = Field(default_factory=list, alias="componentDetails")

    model_config = {"populate_by_name": True}

