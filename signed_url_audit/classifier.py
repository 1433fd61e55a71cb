"""Keyword-based phishing indicators for rendered page content.

Every indicator is an independent predicate over the rendered HTML and the
URL the page resolved to. The scored indicators decide ``total_indicators``;
the diagnostics only record raw keyword presence for human review.
"""

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

log = logging.getLogger(__name__)

type Predicate = Callable[[str, str], bool]

BRAND_KEYWORDS: Sequence[str] = ("BRI", "bank", "rakyat", "indonesia")
FINANCIAL_KEYWORDS: Sequence[str] = (
    "bank",
    "login",
    "debit",
    "card",
    "password",
    "BRI",
)
REDIRECT_PRIMITIVES: Sequence[str] = (
    "window.location",
    "document.location",
    "window.navigate",
)
EXFILTRATION_PRIMITIVES: Sequence[str] = (
    "XMLHttpRequest",
    "fetch(",
    "$.ajax",
    "$.post",
)


@dataclass(frozen=True, kw_only=True)
class Indicator:
    """A named predicate over (content, resolved URL)."""

    name: str
    description: str
    predicate: Predicate


@dataclass(frozen=True, kw_only=True)
class IndicatorReport:
    """Presence of each indicator for one piece of content."""

    indicators: Mapping[str, bool]
    diagnostics: Mapping[str, bool]

    @property
    def total_indicators(self) -> int:
        """Number of scored indicators that fired."""
        return sum(1 for present in self.indicators.values() if present)

    @property
    def fired(self) -> Sequence[str]:
        """Names of the scored indicators that fired, in table order."""
        return [name for name, present in self.indicators.items() if present]


def mismatched_brands(content: str, url: str) -> Sequence[str]:
    """Brands the content mentions that the URL does not contain."""
    content = content.lower()
    url = url.lower()
    return [
        brand
        for brand in BRAND_KEYWORDS
        if brand.lower() in content and brand.lower() not in url
    ]


def has_brand_mismatch(content: str, url: str) -> bool:
    return bool(mismatched_brands(content, url))


def has_suspicious_redirects(content: str, url: str) -> bool:
    return any(primitive in content for primitive in REDIRECT_PRIMITIVES)


def has_data_exfiltration(content: str, url: str) -> bool:
    return any(primitive in content for primitive in EXFILTRATION_PRIMITIVES)


def _keyword_present(keyword: str) -> Predicate:
    return lambda content, url: keyword.lower() in content.lower()


SCORED_INDICATORS: Sequence[Indicator] = (
    Indicator(
        name="brand_mismatch",
        description="Content mentions a brand the URL does not carry",
        predicate=has_brand_mismatch,
    ),
    Indicator(
        name="suspicious_redirects",
        description="Content navigates the browser from script",
        predicate=has_suspicious_redirects,
    ),
    Indicator(
        name="data_exfiltration",
        description="Content issues asynchronous requests from script",
        predicate=has_data_exfiltration,
    ),
)

DIAGNOSTICS: Sequence[Indicator] = tuple(
    Indicator(
        name=f"keyword:{keyword}",
        description=f"Content mentions '{keyword}'",
        predicate=_keyword_present(keyword),
    )
    for keyword in FINANCIAL_KEYWORDS
)


def classify(
    content: str,
    resolved_url: str,
    indicators: Sequence[Indicator] = SCORED_INDICATORS,
    diagnostics: Sequence[Indicator] = DIAGNOSTICS,
) -> IndicatorReport:
    """Evaluate every indicator against rendered content.

    Args:
        content: Fully rendered HTML of the page
        resolved_url: URL the page ended up on after redirects
        indicators: Scored indicator table
        diagnostics: Unscored indicator table

    Returns:
        Report with one boolean per indicator

    """
    diagnostic_values = {
        diagnostic.name: diagnostic.predicate(content, resolved_url)
        for diagnostic in diagnostics
    }
    for name, present in diagnostic_values.items():
        log.info("Contains %s: %s", name, present)

    for brand in mismatched_brands(content, resolved_url):
        log.info(
            "Brand mismatch detected: content mentions '%s' but URL doesn't", brand
        )

    indicator_values = {
        indicator.name: indicator.predicate(content, resolved_url)
        for indicator in indicators
    }
    for name, present in indicator_values.items():
        log.info("Indicator %s: %s", name, present)

    report = IndicatorReport(
        indicators=indicator_values, diagnostics=diagnostic_values
    )
    log.info("Total phishing indicators found: %d", report.total_indicators)
    return report
