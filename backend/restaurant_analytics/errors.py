"""
Analytics Error Taxonomy
========================

Exceptions raised by the filter compiler, the services and the query engine,
plus the JSON envelope the API returns for them.

WHY THIS FILE EXISTS
--------------------
Failures come from three places:

    1. Filter values from the query string or JSON body
       - period that is not "<integer>d"
       - malformed dates, non-numeric store / sub-brand ids
       -> InvalidFilterError (HTTP 400)

    2. Request shape of the custom query endpoint
       - unknown metric or dimension
       -> InvalidQueryError (HTTP 400)

    3. The database
       - connection loss, timeouts, SQL errors
       -> QueryExecutionError (HTTP 500), never retried

Every error renders as ``{"error": <message>}`` with an optional
``"details"`` field, so the dashboard can show a stable message.

RELATED FILES
-------------
- restaurant_analytics/filters/compiler.py: raises InvalidFilterError
- restaurant_analytics/database.py: raises QueryExecutionError
- restaurant_analytics/main.py: registers the exception handlers
"""

from typing import Any, Dict, Optional


class AnalyticsError(Exception):
    """
    Base class for errors that map onto an HTTP error envelope.

    PARAMETERS:
        message: User-facing message (goes into "error")
        status_code: HTTP status to respond with
        details: Optional technical detail (goes into "details")
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        """Render the JSON error envelope."""
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class InvalidFilterError(AnalyticsError):
    """A filter value does not conform to the filter vocabulary."""

    status_code = 400

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = value
        super().__init__(f"Filtro inválido '{field}': {reason}")


class InvalidQueryError(AnalyticsError):
    """The custom query request names an unknown metric or dimension."""

    status_code = 400


class QueryExecutionError(AnalyticsError):
    """
    The query engine failed to execute a query.

    The endpoint name is kept so logs and Sentry events can be grouped
    per dashboard widget.
    """

    status_code = 500

    def __init__(self, endpoint: str, message: str, details: Optional[str] = None):
        self.endpoint = endpoint
        super().__init__(message, details=details)
