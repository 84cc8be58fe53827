"""Site-specific download count extractors.

Each source page gets its own extractor. Both follow the same contract: take
the raw HTML and the add-on name, return a non-negative integer, or raise a
ScraperAssumptionException when the page does not look the way the rule
describes.

The page layout belongs to the third-party sites, so the rules are pydantic
models that can be overridden from a JSON file (see config.load_rules)
instead of structure baked into code.
"""

from __future__ import annotations

import logging
from typing import Protocol

from cssselect import SelectorError
from lxml import etree
from lxml.cssselect import LxmlHTMLTranslator
from pydantic import BaseModel, ConfigDict, Field, field_validator

from addon_fetcher.common.checked_html import CheckedHtmlElement
from addon_fetcher.common.exceptions import (
    CountFormatException,
    HTMLStructuralAssumptionException,
)
from addon_fetcher.data_types import SOURCE_CURSEFORGE, SOURCE_WOWINTERFACE

logger = logging.getLogger(__name__)


class Extractor(Protocol):
    """Extract a download count from one source's page."""

    source: str

    def extract(self, html: str, addon_name: str, url: str = "") -> int: ...


class LabelSiblingRule(BaseModel):
    """Count sits in the element right after a label element.

    CurseForge project pages render ``<dt>Downloads</dt><dd>1234</dd>``.
    """

    model_config = ConfigDict(extra="forbid")

    label_selector: str = "dt"
    label_text: str = "Downloads"
    thousands_separators: str = ","

    @field_validator("label_selector")
    @classmethod
    def validate_label_selector(cls, v: str) -> str:
        try:
            LxmlHTMLTranslator().css_to_xpath(v)
        except SelectorError as e:
            raise ValueError(f"Invalid CSS selector {v!r}: {e}") from e
        return v


class LinkRowRule(BaseModel):
    """Count sits in a table row found through the add-on's link.

    WoWInterface author pages list each add-on as a row. The add-on link is
    nested ``ancestor_levels`` deep inside the row; the last cell of the row
    holds the statistics and its first child the download count.
    """

    model_config = ConfigDict(extra="forbid")

    link_tag: str = Field(default="a", pattern=r"^[A-Za-z][A-Za-z0-9]*$")
    ancestor_levels: int = Field(default=3, ge=1)
    stats_cell_xpath: str = "*[last()]"
    value_xpath: str = "*[1]"
    thousands_separators: str = ","

    @field_validator("stats_cell_xpath", "value_xpath")
    @classmethod
    def validate_xpath(cls, v: str) -> str:
        try:
            etree.XPath(v)
        except etree.XPathSyntaxError as e:
            raise ValueError(f"Invalid XPath expression {v!r}: {e}") from e
        return v


class ExtractionRules(BaseModel):
    """Rules for every source, keyed by source name."""

    model_config = ConfigDict(extra="forbid")

    curseforge: LabelSiblingRule = Field(default_factory=LabelSiblingRule)
    wowinterface: LinkRowRule = Field(default_factory=LinkRowRule)


def parse_count(text: str, url: str = "", separators: str = ",") -> int:
    """Parse download count text as a non-negative integer.

    Only ASCII digits are accepted once surrounding whitespace and the given
    thousands separators are removed.

    Raises:
        CountFormatException: If anything else is left.
    """
    cleaned = text.strip()
    for separator in separators:
        cleaned = cleaned.replace(separator, "")
    if not cleaned or not (cleaned.isascii() and cleaned.isdigit()):
        raise CountFormatException(text, url)
    return int(cleaned)


class LabelSiblingExtractor:
    """Variant A: label element followed by the count element."""

    source = SOURCE_CURSEFORGE

    def __init__(self, rule: LabelSiblingRule | None = None) -> None:
        self.rule = rule or LabelSiblingRule()

    def extract(self, html: str, addon_name: str, url: str = "") -> int:
        tree = CheckedHtmlElement.from_html(html, url)
        candidates = tree.checked_css(
            self.rule.label_selector, "download label candidates", min_count=0
        )
        labels = [
            label
            for label in candidates
            if " ".join(label.text_content().split()) == self.rule.label_text
        ]
        if not labels:
            raise HTMLStructuralAssumptionException(
                selector=self.rule.label_selector,
                selector_type="css",
                description=f"'{self.rule.label_text}' label",
                expected_min=1,
                expected_max=None,
                actual_count=0,
                request_url=url,
            )
        if len(labels) > 1:
            logger.debug(
                f"{len(labels)} '{self.rule.label_text}' labels on {url}, "
                "using the first"
            )

        (value,) = labels[0].checked_xpath(
            "following-sibling::*[1]",
            "download count next to label",
            min_count=1,
            max_count=1,
        )
        return parse_count(
            value.text_content(), url, self.rule.thousands_separators
        )


class LinkRowExtractor:
    """Variant B: add-on link, up to its row, last cell, first child."""

    source = SOURCE_WOWINTERFACE

    def __init__(self, rule: LinkRowRule | None = None) -> None:
        self.rule = rule or LinkRowRule()

    def extract(self, html: str, addon_name: str, url: str = "") -> int:
        tree = CheckedHtmlElement.from_html(html, url)
        # An author page lists every add-on, and one name can contain another.
        links = tree.checked_xpath(
            f"//{self.rule.link_tag}"
            "[normalize-space(.) = normalize-space($name)]",
            f"link named {addon_name}",
            min_count=0,
            name=addon_name,
        )
        if not links:
            links = tree.checked_xpath(
                f"//{self.rule.link_tag}"
                "[contains(normalize-space(.), normalize-space($name))]",
                f"link to {addon_name}",
                name=addon_name,
            )
        if len(links) > 1:
            logger.debug(
                f"{len(links)} links mention {addon_name} on {url}, "
                "using the first"
            )

        (row,) = links[0].checked_xpath(
            f"ancestor::*[{self.rule.ancestor_levels}]",
            f"row containing {addon_name}",
            min_count=1,
            max_count=1,
        )
        (stats_cell,) = row.checked_xpath(
            self.rule.stats_cell_xpath,
            "statistics cell",
            min_count=1,
            max_count=1,
        )
        (value,) = stats_cell.checked_xpath(
            self.rule.value_xpath,
            "download count in statistics cell",
            min_count=1,
            max_count=1,
        )
        return parse_count(
            value.text_content(), url, self.rule.thousands_separators
        )


def build_extractors(
    rules: ExtractionRules | None = None,
) -> dict[str, Extractor]:
    """Create one extractor per source from the given rules."""
    rules = rules or ExtractionRules()
    return {
        SOURCE_CURSEFORGE: LabelSiblingExtractor(rules.curseforge),
        SOURCE_WOWINTERFACE: LinkRowExtractor(rules.wowinterface),
    }
