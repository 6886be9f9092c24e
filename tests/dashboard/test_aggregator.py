"""
Tests de l'agrégation du tableau de bord (filtre, tri, statistiques).
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from quotedesk.dashboard.service import build_dashboard, compute_stats, filter_quotations, sort_newest_first
from quotedesk.quotations.models import Quotation, QuotationStatus


def _quotation(number, client, status, grand_total, created_at=None):
    return Quotation(
        quotation_number=number,
        client_name=client,
        status=status,
        grand_total=grand_total,
        created_at=created_at,
    )


@pytest.fixture
def collection():
    return [
        _quotation("QT-2024-0001", "Priya Raman", QuotationStatus.ACCEPTED, "100",
                   datetime(2024, 1, 1, tzinfo=timezone.utc)),
        _quotation("QT-2024-0002", "Arun Kumar", QuotationStatus.PENDING, "999",
                   datetime(2024, 3, 1, tzinfo=timezone.utc)),
        _quotation("QT-2024-0003", "Meena Events", QuotationStatus.ACCEPTED, "50",
                   datetime(2024, 2, 1, tzinfo=timezone.utc)),
        _quotation("QT-2024-0004", "Draft Client", QuotationStatus.DRAFT, "10"),
    ]


def test_stats_count_statuses_and_accepted_revenue(collection):
    stats = compute_stats(collection)
    assert stats.total == 4
    assert stats.pending == 1
    assert stats.accepted == 2
    assert stats.revenue == Decimal("150.00")


def test_non_numeric_grand_total_counts_as_zero():
    quotation = Quotation.model_validate({"status": "Accepted", "grandTotal": "n/a"})
    assert compute_stats([quotation]).revenue == Decimal("0.00")


def test_empty_collection():
    stats = compute_stats([])
    assert (stats.total, stats.pending, stats.accepted, stats.revenue) == (0, 0, 0, Decimal("0.00"))


def test_filter_matches_client_or_number_case_insensitively(collection):
    assert [q.client_name for q in filter_quotations(collection, "ARUN")] == ["Arun Kumar"]
    assert [q.quotation_number for q in filter_quotations(collection, "0003")] == ["QT-2024-0003"]
    assert len(filter_quotations(collection, "")) == 4
    assert len(filter_quotations(collection, None)) == 4
    assert filter_quotations(collection, "nobody") == []


def test_search_term_is_not_trimmed(collection):
    assert len(filter_quotations(collection, " ")) == 4
    assert [q.client_name for q in filter_quotations(collection, " kumar")] == ["Arun Kumar"]
    assert filter_quotations(collection, "kumar ") == []


def test_sort_newest_first_with_missing_dates_last(collection):
    numbers = [q.quotation_number for q in sort_newest_first(collection)]
    assert numbers == ["QT-2024-0002", "QT-2024-0003", "QT-2024-0001", "QT-2024-0004"]


def test_dashboard_stats_follow_the_filter(collection):
    view = build_dashboard(collection, "priya")
    assert [q.client_name for q in view.quotations] == ["Priya Raman"]
    assert view.stats.total == 1
    assert view.stats.accepted == 1
    assert view.stats.revenue == Decimal("100.00")
