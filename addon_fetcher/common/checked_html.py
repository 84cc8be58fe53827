"""Checked HTML element wrapper for safe XPath/CSS querying.

This module provides CheckedHtmlElement, a wrapper around lxml.html.HtmlElement
that validates selector results against expected counts. Third-party download
pages change without notice; a count check turns a silent wrong number into a
clear HTMLStructuralAssumptionException.
"""

from __future__ import annotations

from typing import Any

from lxml import etree, html
from lxml.html import HtmlElement

from addon_fetcher.common.exceptions import (
    HTMLStructuralAssumptionException,
)


class CheckedHtmlElement:
    """Wrapper around HtmlElement with validated selectors.

    This class wraps an lxml HtmlElement and provides checked_xpath() and
    checked_css() methods that validate the number of results against expected
    min/max counts. If the actual count doesn't match expectations, it raises
    HTMLStructuralAssumptionException with clear error context.
    """

    def __init__(self, element: HtmlElement, request_url: str = "") -> None:
        """Initialize the checked element wrapper.

        Args:
            element: The lxml HtmlElement to wrap.
            request_url: Optional URL for error context.
        """
        self._element = element
        self._request_url = request_url

    @classmethod
    def from_html(cls, text: str, request_url: str = "") -> CheckedHtmlElement:
        """Parse a page and wrap its root element.

        Raises:
            HTMLStructuralAssumptionException: If the page is empty.
        """
        if not text.strip():
            raise HTMLStructuralAssumptionException(
                selector="/",
                selector_type="xpath",
                description="document root",
                expected_min=1,
                expected_max=1,
                actual_count=0,
                request_url=request_url,
            )
        return cls(html.fromstring(text), request_url)

    def checked_xpath(
        self,
        xpath: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
        **variables: Any,
    ) -> list[CheckedHtmlElement]:
        """Execute XPath query with count validation.

        Args:
            xpath: XPath expression to execute.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).
            **variables: XPath variables, referenced as ``$name`` in the
                expression. Use these for untrusted text such as add-on names.

        Returns:
            List of matching CheckedHtmlElements. String results (text,
            attributes) are filtered out.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match
                expectations or the expression cannot be evaluated.

        Example::

            tree = CheckedHtmlElement.from_html(page)
            links = tree.checked_xpath(
                "//a[contains(., $name)]", "addon link", name="GoldCounter"
            )
        """
        try:
            results = self._element.xpath(xpath, **variables)
        except etree.XPathError as e:
            raise HTMLStructuralAssumptionException(
                selector=xpath,
                selector_type="xpath",
                description=description,
                expected_min=min_count,
                expected_max=max_count,
                actual_count=0,
                request_url=self._request_url,
            ) from e

        wrapped: list[CheckedHtmlElement] = [
            CheckedHtmlElement(r, self._request_url)
            for r in results
            if isinstance(r, HtmlElement)
        ]
        actual_count = len(wrapped)
        if actual_count < min_count or (
            max_count is not None and actual_count > max_count
        ):
            raise HTMLStructuralAssumptionException(
                selector=xpath,
                selector_type="xpath",
                description=description,
                expected_min=min_count,
                expected_max=max_count,
                actual_count=actual_count,
                request_url=self._request_url,
            )
        return wrapped

    def checked_css(
        self,
        selector: str,
        description: str,
        min_count: int = 1,
        max_count: int | None = None,
    ) -> list[CheckedHtmlElement]:
        """Execute CSS selector query with count validation.

        Args:
            selector: CSS selector expression.
            description: Human-readable description of what's being selected.
            min_count: Minimum number of elements expected (default: 1).
            max_count: Maximum number of elements expected (None = unlimited).

        Returns:
            List of matching CheckedHtmlElements.

        Raises:
            HTMLStructuralAssumptionException: If count doesn't match
                expectations or the selector is invalid.
        """
        try:
            results = self._element.cssselect(selector)
        except Exception as e:
            raise HTMLStructuralAssumptionException(
                selector=selector,
                selector_type="css",
                description=description,
                expected_min=min_count,
                expected_max=max_count,
                actual_count=0,
                request_url=self._request_url,
            ) from e

        actual_count = len(results)
        if actual_count < min_count or (
            max_count is not None and actual_count > max_count
        ):
            raise HTMLStructuralAssumptionException(
                selector=selector,
                selector_type="css",
                description=description,
                expected_min=min_count,
                expected_max=max_count,
                actual_count=actual_count,
                request_url=self._request_url,
            )

        return [
            CheckedHtmlElement(result, self._request_url) for result in results
        ]

    def __getattr__(self, name: str):
        """Delegate all other attributes to the wrapped element.

        This allows CheckedHtmlElement to be used as a drop-in replacement for
        HtmlElement, while adding the checked methods.
        """
        return getattr(self._element, name)
