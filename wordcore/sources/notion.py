"""
Notion-backed content source and progress sink.

Cards are pages of a Notion database queried in "Last Studied" order; grades
are written back to the page's "Memorized" select and "Last Studied" date.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import FetchError, PersistError
from ..models import Card, Grade, Page
from ..progress import ProgressSink
from .base import ContentSource

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
REQUEST_TIMEOUT = 30.0


def _rich_text(prop: Optional[Dict[str, Any]], key: str = "rich_text") -> str:
    items = (prop or {}).get(key) or []
    return items[0].get("plain_text", "") if items else ""


def _multi_select(prop: Optional[Dict[str, Any]]) -> List[str]:
    return [item["name"] for item in (prop or {}).get("multi_select") or []]


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Ignoring unparseable timestamp: {value!r}")
        return None


def transform_notion_page(raw_page: Dict[str, Any]) -> Card:
    """
    Map a raw Notion page object onto a Card.

    Parameters:
        raw_page (Dict[str, Any]): One element of a database query's `results`.

    Returns:
        Card: The card; absent properties fall back to empty values.
    """
    properties = raw_page.get("properties") or {}
    last_studied = (properties.get("Last Studied") or {}).get("date") or {}
    memorized = (properties.get("Memorized") or {}).get("select") or {}
    return Card(
        id=raw_page["id"],
        page_url=raw_page.get("url") or "",
        phrase=_rich_text(properties.get("Phrase"), key="title"),
        meaning=_rich_text(properties.get("Meaning")),
        example=_rich_text(properties.get("Example")),
        categories=_multi_select(properties.get("Category")),
        movies=_multi_select(properties.get("Movie")),
        url=(properties.get("URL") or {}).get("url") or "",
        pronunciation_check=bool(
            (properties.get("PronunciationCheck") or {}).get("checkbox")
        ),
        memorized=memorized.get("name") or "",
        last_studied=_parse_timestamp(last_studied.get("start")),
        created=_parse_timestamp(
            (properties.get("Created") or {}).get("created_time")
        ),
    )


class NotionClient:
    """Thin async wrapper over the Notion REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = NOTION_API_URL,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Notion-Version": NOTION_VERSION,
                "Content-Type": "application/json",
            },
        )

    async def query_database(
        self, database_id: str, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        resp = await self._client.post(
            f"/databases/{database_id}/query", json=payload
        )
        resp.raise_for_status()
        return resp.json()

    async def update_page(
        self, page_id: str, properties: Dict[str, Any]
    ) -> Dict[str, Any]:
        resp = await self._client.patch(
            f"/pages/{page_id}", json={"properties": properties}
        )
        resp.raise_for_status()
        return resp.json()

    async def aclose(self) -> None:
        await self._client.aclose()


class NotionContentSource(ContentSource):
    """Pages through a Notion database, oldest "Last Studied" first."""

    def __init__(
        self, client: NotionClient, database_id: str, page_size: int = 100
    ):
        if not database_id:
            raise ValueError("A Notion database ID is required.")
        self.client = client
        self.database_id = database_id
        self.page_size = page_size

    async def fetch_page(self, cursor: Optional[str]) -> Page:
        payload: Dict[str, Any] = {
            "sorts": [{"property": "Last Studied", "direction": "ascending"}],
            "page_size": self.page_size,
        }
        if cursor is not None:
            payload["start_cursor"] = cursor

        try:
            raw = await self.client.query_database(self.database_id, payload)
            cards = [transform_notion_page(p) for p in raw.get("results", [])]
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error(f"Error fetching and formatting database pages: {e}")
            raise FetchError(
                "Failed to fetch and format database pages.",
                original_exception=e,
            ) from e

        return Page(cards=cards, next_cursor=raw.get("next_cursor") or None)

    async def aclose(self) -> None:
        await self.client.aclose()


class NotionProgressSink(ProgressSink):
    """Writes the grade label and review time back onto the card's page."""

    def __init__(self, client: NotionClient):
        self.client = client

    async def record(
        self,
        card_id: str,
        grade: Grade,
        timestamp: datetime,
        phrase: Optional[str] = None,
    ) -> None:
        properties = {
            "Memorized": {"select": {"name": grade.label}},
            "Last Studied": {"date": {"start": timestamp.isoformat()}},
        }
        try:
            await self.client.update_page(card_id, properties)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to update Notion page {card_id}: {e}")
            raise PersistError(
                "Failed to update memorization status.", original_exception=e
            ) from e
