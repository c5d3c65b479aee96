"""Label-anchored extraction of company facts from filing text.

Every field is probed independently against the full text and the first match
wins.  A field that does not match is left as ``None``; extraction never
raises.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, Final, Optional

from .models import CompanyInfo, FinancialData

LOGGER = logging.getLogger(__name__)

THOUSANDS: Final[int] = 1000

_AMOUNT = r"\s*\$?([\d,]+)"

_NAME_RE = re.compile(r"^([A-Z][a-zA-Z\s&]+(?:Inc|Corp|Corporation|Company|Ltd|LLC))", re.MULTILINE)
_TICKER_RE = re.compile(r"Ticker Symbol:\s*([A-Z]{1,5})", re.IGNORECASE)
_INDUSTRY_RE = re.compile(r"Industry:\s*([^\n\r]+)", re.IGNORECASE)
_EMPLOYEES_RE = re.compile(r"Employees:\s*([\d,]+)", re.IGNORECASE)
_HEADQUARTERS_RE = re.compile(r"Headquarters:\s*([^\n\r]+)", re.IGNORECASE)

# FinancialData field -> label pattern, in the order figures appear in a filing.
FINANCIAL_PATTERNS: Final[Dict[str, re.Pattern[str]]] = {
    "revenue": re.compile(r"Revenue" + _AMOUNT, re.IGNORECASE),
    "gross_profit": re.compile(r"Gross Profit" + _AMOUNT, re.IGNORECASE),
    "operating_income": re.compile(r"Operating Income" + _AMOUNT, re.IGNORECASE),
    "net_income": re.compile(r"Net Income" + _AMOUNT, re.IGNORECASE),
    "total_assets": re.compile(r"Total Assets" + _AMOUNT, re.IGNORECASE),
    "cash": re.compile(r"Cash and Cash Equivalents" + _AMOUNT, re.IGNORECASE),
    "total_liabilities": re.compile(r"Total Liabilities" + _AMOUNT, re.IGNORECASE),
    "long_term_debt": re.compile(r"Long-term Debt" + _AMOUNT, re.IGNORECASE),
    "shareholders_equity": re.compile(r"Shareholders['\s]*Equity" + _AMOUNT, re.IGNORECASE),
}

# Metrics reported by the financial summary, with their display labels.
SUMMARY_METRICS: Final[Dict[str, str]] = {
    "revenue": "Revenue",
    "net_income": "Net Income",
    "gross_profit": "Gross Profit",
    "operating_income": "Operating Income",
    "total_assets": "Total Assets",
    "cash": "Cash",
    "total_liabilities": "Total Liabilities",
    "shareholders_equity": "Shareholders' Equity",
}


def _parse_amount(raw: str) -> Optional[int]:
    digits = raw.replace(",", "")
    if not digits:
        return None
    return int(digits)


def _match_text(pattern: re.Pattern[str], text: str) -> Optional[str]:
    match = pattern.search(text)
    if match is None:
        return None
    value = match.group(1).strip()
    return value or None


def _match_int(pattern: re.Pattern[str], text: str) -> Optional[int]:
    match = pattern.search(text)
    if match is None:
        return None
    return _parse_amount(match.group(1))


def extract_financial_data(text: str) -> Optional[FinancialData]:
    """Return the financial figures found in *text*, scaled from thousands.

    ``None`` is returned when no figure matched at all.
    """

    data = FinancialData()
    for field_name, pattern in FINANCIAL_PATTERNS.items():
        amount = _match_int(pattern, text)
        if amount is not None:
            setattr(data, field_name, amount * THOUSANDS)
    if data.is_empty():
        return None
    return data


def extract_company_info(text: str) -> CompanyInfo:
    """Recover the company identity and financial snapshot from *text*."""

    info = CompanyInfo(
        name=_match_text(_NAME_RE, text),
        ticker=_match_text(_TICKER_RE, text),
        industry=_match_text(_INDUSTRY_RE, text),
        employees=_match_int(_EMPLOYEES_RE, text),
        headquarters=_match_text(_HEADQUARTERS_RE, text),
        financial_data=extract_financial_data(text),
    )
    LOGGER.debug(
        "Extracted company info name=%r ticker=%r figures=%s",
        info.name,
        info.ticker,
        sorted(info.financial_data.as_dict()) if info.financial_data else [],
    )
    return info


def extract_financial_metrics(text: str) -> Dict[str, str]:
    """Extract display-ready metric amounts from retrieved chunk text.

    Amounts are reported exactly as written (``"$50,000"``) and are not scaled;
    metrics that do not appear are omitted.
    """

    lowered = text.lower()
    metrics: Dict[str, str] = {}
    for field_name in SUMMARY_METRICS:
        match = FINANCIAL_PATTERNS[field_name].search(lowered)
        if match:
            metrics[field_name] = f"${match.group(1)}"
    return metrics


def format_metrics_summary(metrics: Dict[str, str]) -> str:
    """Render metrics as ``"Revenue: $X, Net Income: $Y"``."""

    parts = [f"{label}: {metrics[key]}" for key, label in SUMMARY_METRICS.items() if key in metrics]
    return ", ".join(parts) or "No financial summary available"


class FactExtractor:
    """Object wrapper so the extractor can be injected into the pipeline."""

    def extract(self, text: str) -> CompanyInfo:
        return extract_company_info(text)
