"""Catalog sync: pull SAM.gov postings and upsert normalized contract rows."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from solicitation_agent.config import CatalogConfig
from solicitation_agent.obs.logging import get_logger
from solicitation_agent.storage.records import RecordStore

logger = get_logger(__name__)


class CatalogError(Exception):
    """Non-success answer from the external catalog."""

    def __init__(self, status: int, detail: str) -> None:
        super().__init__(f"SAM.gov error {status}")
        self.status = status
        self.detail = detail


class CatalogSyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    posted_from: date | None = Field(default=None, alias="postedFrom")
    posted_to: date | None = Field(default=None, alias="postedTo")
    limit: int = 50
    offset: int = 0
    keywords: str | None = None
    naics: str | None = None
    state: str | None = None

    @field_validator("posted_from", "posted_to", mode="before")
    @classmethod
    def _accept_catalog_dates(cls, value: Any) -> Any:
        # MM/DD/YYYY as well as ISO dates.
        if isinstance(value, str):
            try:
                return datetime.strptime(value.strip(), "%m/%d/%Y").date()
            except ValueError:
                return value
        return value

    @field_validator("limit")
    @classmethod
    def _clamp_limit(cls, value: int) -> int:
        return min(max(value, 1), 1000)

    @field_validator("offset")
    @classmethod
    def _clamp_offset(cls, value: int) -> int:
        return max(value, 0)


class CatalogSync:
    """Queries the opportunity catalog and upserts rows keyed by notice id.

    Re-running over an overlapping window updates existing rows instead of
    duplicating them.
    """

    def __init__(
        self,
        store: RecordStore,
        config: CatalogConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self._client = client

    async def run(self, request: CatalogSyncRequest, *, today: date | None = None) -> dict[str, Any]:
        payload = await self._search(request, today or datetime.now(timezone.utc).date())
        total = int(payload.get("totalRecords") or 0)
        records = payload.get("opportunitiesData")
        items = [normalize_opportunity(record) for record in records] if isinstance(records, list) else []

        updated_at = datetime.now(timezone.utc).isoformat()
        rows = [to_contract_row(item, updated_at=updated_at) for item in items if item["noticeId"]]
        if rows:
            await asyncio.to_thread(self.store.upsert_contracts, rows)
        logger.info("catalog_synced", total=total, received=len(items), upserted=len(rows))
        return {"total": total, "items": items}

    def build_params(self, request: CatalogSyncRequest, today: date) -> dict[str, str]:
        posted_to = request.posted_to or today
        posted_from = request.posted_from or today - timedelta(days=self.config.default_window_days - 1)
        params = {
            "api_key": str(self.config.api_key or ""),
            "postedFrom": posted_from.strftime("%m/%d/%Y"),
            "postedTo": posted_to.strftime("%m/%d/%Y"),
            "limit": str(request.limit),
            "offset": str(request.offset),
        }
        for key, value in (("title", request.keywords), ("ncode", request.naics), ("state", request.state)):
            if value and value.strip():
                params[key] = value.strip()
        return params

    async def _search(self, request: CatalogSyncRequest, today: date) -> dict[str, Any]:
        params = self.build_params(request, today)
        headers = {"Accept": "application/json"}
        if self._client is not None:
            response = await self._client.get(self.config.base_url, params=params, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=60.0) as client:
                response = await client.get(self.config.base_url, params=params, headers=headers)
        if not response.is_success:
            raise CatalogError(response.status_code, response.text)
        return response.json()


def normalize_opportunity(record: dict[str, Any]) -> dict[str, Any]:
    place = record.get("placeOfPerformance") or {}
    links = record.get("resourceLinks")
    attachments = (
        [{"name": f"Attachment {index}", "url": url or None} for index, url in enumerate(links, start=1)]
        if isinstance(links, list)
        else []
    )
    ui_link = record.get("uiLink")
    return {
        "noticeId": record.get("noticeId"),
        "title": record.get("title"),
        "agency": record.get("fullParentPathName") or record.get("department") or None,
        "naics": record.get("naicsCode"),
        "setAside": record.get("typeOfSetAsideDescription") or record.get("typeOfSetAside"),
        "type": record.get("type"),
        "solicitationNumber": record.get("solicitationNumber"),
        "placeOfPerformance": {
            "city": (place.get("city") or {}).get("name"),
            "state": (place.get("state") or {}).get("code"),
            "country": (place.get("country") or {}).get("code"),
        },
        "dates": {
            "posted": record.get("postedDate"),
            "responseDue": record.get("responseDeadLine"),
        },
        "urls": {
            "samNotice": ui_link.strip() if isinstance(ui_link, str) and ui_link.strip() else None,
            "attachments": attachments,
        },
        "raw": record,
    }


def to_contract_row(item: dict[str, Any], *, updated_at: str) -> dict[str, Any]:
    place = item["placeOfPerformance"]
    return {
        "notice_id": item["noticeId"],
        "title": item["title"],
        "agency": item["agency"],
        "naics": item["naics"],
        "set_aside": item["setAside"],
        "notice_type": item["type"],
        "solicitation_number": item["solicitationNumber"],
        "place_city": place["city"],
        "place_state": place["state"],
        "place_country": place["country"],
        "posted_at": iso_or_none(item["dates"]["posted"]),
        "response_due_at": iso_or_none(item["dates"]["responseDue"]),
        "sam_ui_link": item["urls"]["samNotice"],
        "attachments": item["urls"]["attachments"],
        "raw": item["raw"],
        "updated_at": updated_at,
    }


def iso_or_none(value: Any) -> str | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()
