"""Async HTTP client for the allocation API, usable as a grid store."""

from __future__ import annotations

from typing import Any

import httpx

from resource_planner.core.logging import logger
from resource_planner.services.allocation_facts import (
    AllocationFact,
    AllocationPageData,
    AllocationWriteOp,
    CreateAllocationOp,
    DeleteAllocationOp,
    UpdateAllocationOp,
    fact_from_payload,
    page_data_from_payload,
)
from resource_planner.services.allocation_grid import AllocationFetchError, AllocationWriteError


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return str(payload)


class AllocationApiClient:
    """Talk to ``/allocation`` and ``/allocations`` of a running planner API."""

    def __init__(
        self,
        base_url: str,
        *,
        email: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"X-MS-EMAIL": email} if email else {}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> AllocationApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_facts(self, year: int, week_from: int, week_to: int) -> AllocationPageData:
        params = {"year": year, "week_from": week_from, "week_to": week_to}
        try:
            resp = await self._client.get("/allocation", params=params)
        except httpx.HTTPError as exc:
            logger.error("Allocation fetch failed: %s", exc)
            raise AllocationFetchError(str(exc)) from exc

        if resp.is_error:
            raise AllocationFetchError(_error_detail(resp), status_code=resp.status_code)
        return page_data_from_payload(resp.json())

    async def write_fact(self, op: AllocationWriteOp) -> AllocationFact | None:
        method, url, body = self._request_for(op)
        try:
            resp = await self._client.request(method, url, json=body)
        except httpx.HTTPError as exc:
            logger.error("Allocation write failed: %s", exc)
            raise AllocationWriteError(str(exc)) from exc

        if resp.is_error:
            raise AllocationWriteError(_error_detail(resp), status_code=resp.status_code)
        if resp.status_code == httpx.codes.NO_CONTENT or not resp.content:
            return None
        return fact_from_payload(resp.json())

    @staticmethod
    def _request_for(op: AllocationWriteOp) -> tuple[str, str, dict[str, Any] | None]:
        if isinstance(op, CreateAllocationOp):
            return (
                "POST",
                "/allocations",
                {
                    "consultant_id": str(op.consultant_id) if op.consultant_id is not None else None,
                    "project_id": str(op.project_id),
                    "role_id": str(op.role_id) if op.role_id is not None else None,
                    "year": op.year,
                    "week": op.week,
                    "hours": str(op.hours),
                },
            )
        if isinstance(op, UpdateAllocationOp):
            body: dict[str, Any] = {}
            if op.hours is not None:
                body["hours"] = str(op.hours)
            if op.replace_role:
                body["role_id"] = str(op.role_id) if op.role_id is not None else None
            return "PATCH", f"/allocations/{op.allocation_id}", body
        if isinstance(op, DeleteAllocationOp):
            return "DELETE", f"/allocations/{op.allocation_id}", None
        raise TypeError(f"Unsupported allocation write: {type(op).__name__}")
