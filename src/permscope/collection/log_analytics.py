"""
Log Analytics activity log for Permscope.

Queries the MicrosoftGraphActivityLogs table of a Log Analytics workspace
for the distinct successful Graph calls made by an application.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from azure.core.exceptions import AzureError, HttpResponseError
from azure.identity import DefaultAzureCredential
from azure.monitor.query import LogsQueryClient, LogsQueryStatus

from permscope.collection.base import (
    ActivityLog,
    ActivityQueryError,
    ResponseSizeExceededError,
)
from permscope.config.analysis_config import AnalysisConfiguration
from permscope.models.activity import ActivityWindow, RawActivity

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "MicrosoftGraphActivityLogs"
DEFAULT_PRINCIPAL_COLUMN = "AppId"

# Error codes the service uses for responses over its size or row limits
SIZE_EXCEEDED_CODES = frozenset({
    "ResponsePayloadTooLarge",
    "E_QUERY_RESULT_SET_TOO_LARGE",
    "QueryResultSetTooLarge",
    "ResponseSizeExceeded",
})

SIZE_EXCEEDED_MARKERS = (
    "result set has exceeded",
    "response size",
    "payload too large",
    "exceeded the limit",
)

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class LogAnalyticsActivityLog(ActivityLog):
    """
    Activity log backed by Microsoft Graph activity logs in Log Analytics.

    The query deduplicates on (method, URI) with the query string removed and
    duplicate slashes collapsed, keeps successful responses only, and caps the
    row count with ``take``. All operations are read-only.

    Example:
        >>> activity_log = LogAnalyticsActivityLog(workspace_id="...")
        >>> rows = activity_log.query_activity(app_id, window)
    """

    store_name = "log_analytics"

    def __init__(
        self,
        workspace_id: str,
        credential: Any | None = None,
        client: Any | None = None,
        table: str = DEFAULT_TABLE,
        principal_column: str = DEFAULT_PRINCIPAL_COLUMN,
        timeout_seconds: int = 600,
    ) -> None:
        """
        Initialize the Log Analytics activity log.

        Args:
            workspace_id: Log Analytics workspace ID
            credential: Optional Azure credential (DefaultAzureCredential if omitted)
            client: Optional preconfigured LogsQueryClient
            table: Table holding Graph activity
            principal_column: Column identifying the calling application
            timeout_seconds: Server-side query timeout
        """
        if not workspace_id and client is None:
            raise ValueError("workspace_id is required for Log Analytics queries")
        for name, value in (("table", table), ("principal_column", principal_column)):
            if not _IDENTIFIER_PATTERN.match(value):
                raise ValueError(f"Invalid {name}: {value!r}")

        self._workspace_id = workspace_id
        self._credential = credential
        self._client = client
        self._table = table
        self._principal_column = principal_column
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_config(
        cls,
        config: AnalysisConfiguration,
        credential: Any | None = None,
    ) -> LogAnalyticsActivityLog:
        """Create an activity log from the workspace settings of a configuration."""
        return cls(
            workspace_id=config.workspace_id,
            credential=credential,
            table=config.log_table,
            principal_column=config.principal_column,
            timeout_seconds=config.query_timeout_seconds,
        )

    @property
    def workspace_id(self) -> str:
        """Get the workspace ID."""
        return self._workspace_id

    def _get_client(self) -> Any:
        """Get or create the Logs query client."""
        if self._client is None:
            credential = self._credential or DefaultAzureCredential()
            self._client = LogsQueryClient(credential)
        return self._client

    def build_query(self, principal_id: str, window: ActivityWindow) -> str:
        """
        Build the KQL query for a principal and window.

        Args:
            principal_id: Application identifier
            window: Time range and row cap

        Returns:
            KQL query text
        """
        start = window.start.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
        end = window.end.strftime("%Y-%m-%dT%H:%M:%S.%fZ")

        lines = [
            self._table,
            f"| where TimeGenerated >= datetime({start}) and TimeGenerated < datetime({end})",
            f"| where {self._principal_column} == {quote_kql_string(principal_id)}",
            "| where ResponseStatusCode >= 200 and ResponseStatusCode < 300",
            "| extend Uri = replace_regex(tostring(split(RequestUri, '?')[0]), @'([^:])/{2,}', @'\\1/')",
            "| distinct RequestMethod, Uri",
            f"| take {window.max_entries}",
        ]
        return "\n".join(lines)

    def query_activity(
        self,
        principal_id: str,
        window: ActivityWindow,
    ) -> list[RawActivity]:
        """
        Query distinct successful Graph calls for an application.

        Args:
            principal_id: Application identifier
            window: Time range and row cap

        Returns:
            Distinct raw activities

        Raises:
            ResponseSizeExceededError: If the response is over the service limits
            ActivityQueryError: If the query fails for any other reason
        """
        query = self.build_query(principal_id, window)

        try:
            response = self._get_client().query_workspace(
                workspace_id=self._workspace_id,
                query=query,
                timespan=(window.start, window.end),
                server_timeout=self._timeout_seconds,
            )
        except HttpResponseError as e:
            code = _error_code(e)
            message = str(e.message or e)
            if is_size_exceeded(code, message) or e.status_code == 413:
                raise ResponseSizeExceededError(message, code=code) from e
            raise ActivityQueryError(f"Log Analytics query failed: {message}", code=code) from e
        except AzureError as e:
            raise ActivityQueryError(f"Log Analytics request failed: {e}") from e

        if response.status == LogsQueryStatus.PARTIAL:
            error = response.partial_error
            code = str(getattr(error, "code", "") or "")
            message = str(getattr(error, "message", "") or error)
            if is_size_exceeded(code, message):
                raise ResponseSizeExceededError(message, code=code)
            raise ActivityQueryError(f"Log Analytics returned partial results: {message}", code=code)

        if response.status != LogsQueryStatus.SUCCESS:
            raise ActivityQueryError(f"Log Analytics query status: {response.status}")

        activities = self._parse_tables(response.tables)
        logger.debug(
            f"Log Analytics returned {len(activities)} rows for {principal_id} "
            f"({window.start.isoformat()} - {window.end.isoformat()})"
        )
        return activities

    def _parse_tables(self, tables: list[Any]) -> list[RawActivity]:
        """Convert result tables to raw activities."""
        activities: list[RawActivity] = []

        for table in tables or []:
            columns = [getattr(c, "name", c) for c in table.columns]
            try:
                method_index = columns.index("RequestMethod")
                uri_index = columns.index("Uri")
            except ValueError:
                logger.warning(f"Unexpected result columns: {columns}")
                continue

            for row in table.rows:
                method = row[method_index]
                uri = row[uri_index]
                if not method or not uri:
                    continue
                activities.append(RawActivity(method=str(method), uri=str(uri)))

        return activities


def quote_kql_string(value: str) -> str:
    """Quote a value as a KQL string literal."""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def is_size_exceeded(code: str, message: str) -> bool:
    """Whether an error code or message identifies an oversized response."""
    if code and code in SIZE_EXCEEDED_CODES:
        return True
    lowered = (message or "").lower()
    return any(marker in lowered for marker in SIZE_EXCEEDED_MARKERS)


def _error_code(error: HttpResponseError) -> str:
    """Extract the service error code, including a nested inner error."""
    odata = getattr(error, "error", None)
    if odata is None:
        return ""
    code = str(getattr(odata, "code", "") or "")
    innererror = getattr(odata, "innererror", None) or {}
    inner_code = innererror.get("code") if isinstance(innererror, dict) else None
    if inner_code and inner_code in SIZE_EXCEEDED_CODES:
        return str(inner_code)
    return code
