from __future__ import annotations

from conftest import make_filing

from filing_rag.ingest.extraction import (
    FactExtractor,
    extract_company_info,
    extract_financial_data,
    extract_financial_metrics,
    format_metrics_summary,
)


def test_ticker_and_revenue_are_extracted_and_scaled_from_thousands() -> None:
    info = extract_company_info("Ticker Symbol: ABCD\nRevenue $50,000\n")

    assert info.ticker == "ABCD"
    assert info.financial_data is not None
    assert info.financial_data.revenue == 50_000_000


def test_full_filing_populates_identity_and_all_figures() -> None:
    info = FactExtractor().extract(make_filing())

    assert info.name == "ACME Widgets Inc"
    assert info.ticker == "ACME"
    assert info.industry == "Industrial Manufacturing"
    assert info.employees == 12_500
    assert info.headquarters == "Springfield, Illinois"
    assert info.financial_data is not None
    assert info.financial_data.as_dict() == {
        "revenue": 50_000_000,
        "gross_profit": 20_000_000,
        "operating_income": 12_000_000,
        "net_income": 9_000_000,
        "total_assets": 150_000_000,
        "cash": 30_000_000,
        "total_liabilities": 70_000_000,
        "long_term_debt": 25_000_000,
        "shareholders_equity": 80_000_000,
    }


def test_missing_fields_are_none_and_never_raise() -> None:
    info = extract_company_info("nothing useful here")

    assert info.name is None
    assert info.ticker is None
    assert info.industry is None
    assert info.employees is None
    assert info.headquarters is None
    assert info.financial_data is None


def test_partial_financial_data_keeps_unmatched_fields_empty() -> None:
    data = extract_financial_data("Net Income 1,250 and nothing else")

    assert data is not None
    assert data.net_income == 1_250_000
    assert data.revenue is None
    assert data.as_dict() == {"net_income": 1_250_000}


def test_first_match_wins_for_repeated_labels() -> None:
    data = extract_financial_data("Revenue $10 ... later Revenue $99")

    assert data is not None
    assert data.revenue == 10_000


def test_labels_are_case_insensitive_and_apostrophe_is_optional() -> None:
    data = extract_financial_data("TOTAL ASSETS 5 shareholders equity 7")

    assert data is not None
    assert data.total_assets == 5_000
    assert data.shareholders_equity == 7_000


def test_display_metrics_are_reported_as_written() -> None:
    metrics = extract_financial_metrics("Revenue $50,000 Net Income 9,000 Long-term Debt $25,000")

    assert metrics == {"revenue": "$50,000", "net_income": "$9,000"}


def test_metrics_summary_renders_labels_in_fixed_order() -> None:
    summary = format_metrics_summary({"net_income": "$9,000", "revenue": "$50,000"})

    assert summary == "Revenue: $50,000, Net Income: $9,000"
    assert format_metrics_summary({}) == "No financial summary available"
