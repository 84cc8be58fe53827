"""Exception types for fetcher errors.

Three families live here:

- ConfigurationError: the add-on list or rule file is unusable. Fatal, raised
  before any network activity.
- ScraperAssumptionException: a source page no longer looks the way the
  extractor expects. Fatal only for that one source of that one add-on.
- TransientException: the page could not be fetched (bad status, timeout,
  transport failure). Also isolated to one source of one add-on.

RemoteApiError covers the reporting endpoint.
"""

from typing import Any


class ConfigurationError(Exception):
    """Raised when the add-on configuration cannot be loaded."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.message = message
        self.path = path
        if path:
            super().__init__(f"{path}: {message}")
        else:
            super().__init__(message)


class MissingEntriesError(ConfigurationError):
    """Raised when the configuration file holds no add-on entries."""

    def __init__(self, path: str | None = None) -> None:
        super().__init__(
            "Expected the JSON file to have at least one addon entry.", path
        )


class MissingFieldError(ConfigurationError):
    """Raised when an add-on entry lacks a required field.

    Attributes:
        field: Name of the missing field.
        index: Position of the offending entry in the array.
    """

    def __init__(
        self, field: str, index: int, path: str | None = None
    ) -> None:
        self.field = field
        self.index = index
        super().__init__(
            f'"{field}" was missing for addon entry {index} in the JSON file.',
            path,
        )


class ScraperAssumptionException(Exception):
    """Base class for scraper assumption violations.

    Extractors make assumptions about third-party page structure and number
    formats. When these assumptions are violated, they raise clear,
    contextual exceptions that help diagnose the issue.
    """

    def __init__(
        self,
        message: str,
        request_url: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable description of the assumption violation.
            request_url: The URL of the page that triggered this error.
            context: Optional dict of additional context (selector, counts, etc).
        """
        self.message = message
        self.request_url = request_url
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        parts.append(f"URL: {self.request_url}")

        if self.context:
            parts.append("Context:")
            for key, value in self.context.items():
                parts.append(f"  {key}: {value}")

        return "\n".join(parts)


class HTMLStructuralAssumptionException(ScraperAssumptionException):
    """Raised when HTML structure doesn't match expectations.

    This exception is raised when XPath or CSS selectors return a different
    number of elements than expected. This usually indicates that the source
    site's layout has changed.

    Attributes:
        selector: The XPath or CSS selector that was used.
        selector_type: Type of selector ("xpath" or "css").
    """

    def __init__(
        self,
        selector: str,
        selector_type: str,
        description: str,
        expected_min: int,
        expected_max: int | None,
        actual_count: int,
        request_url: str,
    ) -> None:
        self.selector = selector
        self.selector_type = selector_type
        self.description = description
        self.expected_min = expected_min
        self.expected_max = expected_max
        self.actual_count = actual_count

        if expected_max is None:
            expected_str = f"at least {expected_min}"
        elif expected_min == expected_max:
            expected_str = f"exactly {expected_min}"
        else:
            expected_str = f"between {expected_min} and {expected_max}"

        message = (
            f"HTML structure mismatch: Expected {expected_str} "
            f"elements for '{description}', but found {actual_count}"
        )

        context = {
            "selector": selector,
            "selector_type": selector_type,
            "expected_min": expected_min,
            "expected_max": expected_max
            if expected_max is not None
            else "unlimited",
            "actual_count": actual_count,
        }

        super().__init__(message, request_url, context)


class CountFormatException(ScraperAssumptionException):
    """Raised when the download count text is not a plain number.

    Attributes:
        text: The raw text that failed to parse.
    """

    def __init__(self, text: str, request_url: str) -> None:
        self.text = text
        super().__init__(
            f"Download count is not a number: {text!r}",
            request_url,
            {"text": text},
        )


class TransientException(Exception):
    """Base class for errors fetching a source page.

    Transient exceptions represent failures like network issues, unexpected
    status codes, or timeouts. Nothing is retried; the driver logs the error
    and marks the source as failed for that add-on.
    """

    pass


class HTMLResponseAssumptionException(TransientException):
    """Raised when HTTP response has unexpected status code.

    Attributes:
        status_code: The actual HTTP status code received.
        expected_codes: List of status codes that were expected.
        url: The URL that returned the unexpected status.
        message: Human-readable error message.
    """

    def __init__(
        self,
        status_code: int,
        expected_codes: list[int],
        url: str,
    ) -> None:
        self.status_code = status_code
        self.expected_codes = expected_codes
        self.url = url

        expected_str = ", ".join(str(code) for code in expected_codes)
        self.message = (
            f"HTTP {status_code} from {url} (expected one of: {expected_str})"
        )
        super().__init__(self.message)


class RequestTimeoutException(TransientException):
    """Raised when a request times out.

    Attributes:
        url: The URL that timed out.
        timeout_seconds: The timeout duration in seconds.
        message: Human-readable error message.
    """

    def __init__(self, url: str, timeout_seconds: float | None) -> None:
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.message = f"Request to {url} timed out after {timeout_seconds}s"
        super().__init__(self.message)


class TransportException(TransientException):
    """Raised when a request fails below HTTP (DNS, refused connection).

    Attributes:
        url: The URL that could not be reached.
        reason: Description of the underlying transport error.
        message: Human-readable error message.
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        self.message = f"Request to {url} failed: {reason}"
        super().__init__(self.message)


class RemoteApiError(Exception):
    """Raised when the reporting endpoint returns a non-200 status.

    Attributes:
        method: HTTP method of the failed call.
        url: Full URL of the failed call.
        status_code: The status code returned.
        body: The response body, for the log.
        reason: What was wrong, when the status itself was fine.
    """

    def __init__(
        self,
        method: str,
        url: str,
        status_code: int,
        body: str,
        reason: str | None = None,
    ) -> None:
        self.method = method
        self.url = url
        self.status_code = status_code
        self.body = body
        self.reason = reason
        detail = f"HTTP {status_code}" + (f", {reason}" if reason else "")
        super().__init__(f"{method} {url} returned {detail}: {body}")
