import logging
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests

from ..config import Config
from ..errors import OmnivoreSyncError, TransientError, UnauthorizedError
from ..sync.models import RemoteArticle, RemoteHighlight

logger = logging.getLogger(__name__)

SEARCH_QUERY = """
query Search($after: String, $first: Int, $query: String, $includeContent: Boolean) {
  search(after: $after, first: $first, query: $query, includeContent: $includeContent) {
    ... on SearchSuccess {
      edges {
        node {
          id
          title
          slug
          url
          author
          description
          savedAt
          updatedAt
          publishedAt
          content
          labels { name }
          highlights {
            id
            type
            quote
            annotation
            createdAt
            updatedAt
            highlightPositionPercent
            highlightPositionAnchorIndex
          }
        }
      }
      pageInfo { hasNextPage endCursor }
    }
    ... on SearchError { errorCodes }
  }
}
"""

VIEWER_QUERY = """
query Viewer {
  me { id name profile { username } }
}
"""

_UNAUTHORIZED_CODES = frozenset({"UNAUTHORIZED", "UNAUTHENTICATED"})


@dataclass
class SearchPage:
    """One page of ``search`` results."""

    nodes: list[dict[str, Any]] = field(default_factory=list)
    has_next_page: bool = False
    end_cursor: str | None = None


def parse_datetime(value: Any) -> datetime | None:
    """Parse an Omnivore ISO 8601 timestamp into an aware UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_cursor(dt: datetime) -> str:
    """Format a datetime for an ``updated:`` search filter."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class OmnivoreClient:
    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": self.config.api_key,
                "Content-Type": "application/json",
            }
        )
        return session

    def _graphql(self, query: str, variables: dict[str, Any]) -> dict:
        """
        POST a GraphQL request and return its ``data`` member.

        Rate-limited (429) and server-error (5xx) responses are retried up
        to ``config.max_retries`` times with exponential backoff, honouring
        ``Retry-After``.

        Raises:
            UnauthorizedError: On 401/403 or an UNAUTHENTICATED GraphQL error.
            TransientError: On timeouts, connection or other transport
                failures, exhausted retries, or a response body that is not
                a JSON object.
            OmnivoreSyncError: On any other GraphQL or HTTP error.
        """
        delay = 1.0
        session = self._get_session()

        for attempt in range(self.config.max_retries + 1):
            try:
                response = session.post(
                    self.config.endpoint,
                    json={"query": query, "variables": variables},
                    timeout=(10, self.config.timeout),
                )
            except requests.Timeout as exc:
                raise TransientError(
                    f"Omnivore request timed out: {exc}"
                ) from exc
            except requests.ConnectionError as exc:
                raise TransientError(
                    f"Cannot reach Omnivore: {exc}"
                ) from exc
            except requests.RequestException as exc:
                raise TransientError(
                    f"Omnivore request failed: {exc}"
                ) from exc

            status = response.status_code
            if status in (401, 403):
                raise UnauthorizedError(
                    "Omnivore rejected the API key. Check your API key in the settings."
                )

            if status == 429 or status >= 500:
                if attempt == self.config.max_retries:
                    raise TransientError(
                        f"Omnivore returned HTTP {status} after {attempt + 1} attempt(s)"
                    )
                wait_time = delay
                retry_after = response.headers.get("Retry-After")
                if retry_after:
                    try:
                        wait_time = float(retry_after)
                    except ValueError:
                        pass
                wait_time = min(wait_time, 60.0)
                logger.warning(
                    "Omnivore returned HTTP %d, retrying in %.1fs (attempt %d/%d)",
                    status,
                    wait_time,
                    attempt + 1,
                    self.config.max_retries + 1,
                )
                time.sleep(wait_time)
                delay = min(delay * 2, 60.0)
                continue

            if status >= 400:
                raise OmnivoreSyncError(
                    f"Omnivore request failed with HTTP {status}"
                )

            try:
                payload = response.json()
            except ValueError as exc:
                raise TransientError(
                    "Omnivore returned a malformed response"
                ) from exc
            if not isinstance(payload, dict):
                raise TransientError(
                    "Omnivore returned a malformed response"
                )

            errors = payload.get("errors") or []
            if errors:
                if not isinstance(errors, list):
                    errors = [errors]
                errors = [
                    err if isinstance(err, dict) else {"message": err}
                    for err in errors
                ]
                codes = {
                    str((err.get("extensions") or {}).get("code", ""))
                    for err in errors
                }
                message = "; ".join(
                    str(err.get("message", "unknown error")) for err in errors
                )
                if codes & _UNAUTHORIZED_CODES:
                    raise UnauthorizedError(
                        f"Omnivore rejected the API key: {message}"
                    )
                raise OmnivoreSyncError(f"Omnivore GraphQL error: {message}")

            data = payload.get("data") or {}
            if not isinstance(data, dict):
                raise TransientError("Omnivore returned a malformed response")
            return data

        raise TransientError("Omnivore retry handling failed")

    def validate_connection(self) -> str:
        """
        Validate the API key by fetching the current user.
        Returns the user's display name.
        """
        data = self._graphql(VIEWER_QUERY, {})
        me = data.get("me")
        if not me:
            raise UnauthorizedError("Omnivore did not return a user for this API key")
        return str(me.get("name") or (me.get("profile") or {}).get("username", ""))

    def search_page(
        self,
        query: str,
        after: str | None = None,
        first: int | None = None,
        include_content: bool = False,
    ) -> SearchPage:
        """
        Fetch one page of library search results.

        Args:
            query: Omnivore search query (e.g. "in:all sort:updated-asc")
            after: Cursor returned by the previous page
            first: Page size (default: config.page_size)
            include_content: Include article HTML in the response

        Returns:
            SearchPage with the result nodes and pagination info
        """
        variables = {
            "after": after,
            "first": first or self.config.page_size,
            "query": query,
            "includeContent": include_content,
        }
        data = self._graphql(SEARCH_QUERY, variables)
        search = data.get("search")
        if not isinstance(search, dict):
            raise TransientError("Omnivore search returned no result")

        error_codes = search.get("errorCodes")
        if error_codes:
            if _UNAUTHORIZED_CODES & set(error_codes):
                raise UnauthorizedError(
                    "Omnivore rejected the API key. Check your API key in the settings."
                )
            raise OmnivoreSyncError(
                f"Omnivore search failed: {', '.join(error_codes)}"
            )

        edges = search.get("edges") or []
        page_info = search.get("pageInfo") or {}
        return SearchPage(
            nodes=[e["node"] for e in edges if e.get("node")],
            has_next_page=bool(page_info.get("hasNextPage")),
            end_cursor=page_info.get("endCursor"),
        )

    def _iter_nodes(
        self, query: str, include_content: bool
    ) -> Iterator[dict[str, Any]]:
        """Page through a search until no pages remain."""
        after: str | None = None
        while True:
            page = self.search_page(
                query, after=after, include_content=include_content
            )
            logger.debug(
                "Fetched %d items (after=%s, more=%s)",
                len(page.nodes),
                after,
                page.has_next_page,
            )
            yield from page.nodes

            if not page.has_next_page or not page.end_cursor:
                return
            if page.end_cursor == after:
                logger.warning(
                    "Omnivore returned the same cursor twice, stopping pagination"
                )
                return
            after = page.end_cursor

    @staticmethod
    def build_query(
        since: datetime | None = None, with_highlights: bool = False
    ) -> str:
        parts = ["in:all", "sort:updated-asc"]
        if with_highlights:
            parts.append("has:highlights")
        if since is not None:
            parts.append(f"updated:{format_cursor(since)}..*")
        return " ".join(parts)

    def iter_articles(
        self, since: datetime | None = None, limit: int | None = None
    ) -> Iterator[RemoteArticle]:
        """
        Lazily yield library articles updated since *since*, oldest first.

        Args:
            since: Cursor; ``None`` fetches the whole library
            limit: Stop after this many articles

        Yields:
            RemoteArticle records in ascending update order
        """
        query = self.build_query(since)
        count = 0
        for node in self._iter_nodes(query, include_content=True):
            yield self._to_article(node)
            count += 1
            if limit is not None and count >= limit:
                return

    def iter_highlights(
        self, since: datetime, limit: int | None = None
    ) -> Iterator[RemoteHighlight]:
        """
        Lazily yield highlights created or edited since *since*.

        Highlights are found through articles that have highlights and
        were updated inside the window; highlights older than the window
        are filtered out.

        Args:
            since: Start of the look-back window
            limit: Stop after this many highlights

        Yields:
            RemoteHighlight records
        """
        query = self.build_query(since, with_highlights=True)
        count = 0
        for node in self._iter_nodes(query, include_content=False):
            for raw in node.get("highlights") or []:
                highlight = self._to_highlight(raw, node)
                if highlight is None:
                    continue
                touched = highlight.updated_at or highlight.created_at
                if touched < since:
                    continue
                yield highlight
                count += 1
                if limit is not None and count >= limit:
                    return

    # ------------------------------------------------------------------
    # Response mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_article(node: dict[str, Any]) -> RemoteArticle:
        try:
            saved_at = parse_datetime(node.get("savedAt"))
            updated_at = parse_datetime(node.get("updatedAt")) or saved_at
            return RemoteArticle(
                id=str(node["id"]),
                title=node.get("title") or "Untitled",
                url=node.get("url") or "",
                content=node.get("content") or "",
                saved_at=saved_at or updated_at,
                updated_at=updated_at,
                labels=[
                    lbl["name"]
                    for lbl in node.get("labels") or []
                    if lbl.get("name")
                ],
                author=node.get("author"),
                description=node.get("description"),
                published_at=parse_datetime(node.get("publishedAt")),
                slug=node.get("slug"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TransientError(
                f"Malformed article in Omnivore response: {exc}"
            ) from exc

    @staticmethod
    def _to_highlight(
        raw: dict[str, Any], node: dict[str, Any]
    ) -> RemoteHighlight | None:
        """Map a raw highlight; returns None for empty or redacted ones."""
        if raw.get("type") == "REDACTION":
            return None
        quote = (raw.get("quote") or "").strip()
        annotation = (raw.get("annotation") or "").strip() or None
        if not quote and not annotation:
            return None
        try:
            return RemoteHighlight(
                id=str(raw["id"]),
                article_id=str(node["id"]),
                quote=quote,
                annotation=annotation,
                created_at=parse_datetime(raw["createdAt"]),
                updated_at=parse_datetime(raw.get("updatedAt")),
                position_percent=float(
                    raw.get("highlightPositionPercent") or 0.0
                ),
                position_anchor_index=int(
                    raw.get("highlightPositionAnchorIndex") or 0
                ),
                article_title=node.get("title") or "Untitled",
                article_url=node.get("url") or "",
                highlight_type=raw.get("type") or "HIGHLIGHT",
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TransientError(
                f"Malformed highlight in Omnivore response: {exc}"
            ) from exc
