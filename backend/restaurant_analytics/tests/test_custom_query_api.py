"""
Custom Query Endpoint Tests
===========================

WHAT: POST /api/custom-query allowlists, join selection and filters.
WHY: metric and dimension come from the request body and end up in SQL, so
     anything outside the allowlists must fail before a query is issued.

REFERENCES:
- restaurant_analytics/services/custom_query_service.py
"""

from decimal import Decimal


def test_unknown_metric_is_rejected_without_querying(client, query_engine):
    response = client.post("/api/custom-query", json={"metric": "profit; DROP TABLE sales", "dimension": "channel"})

    assert response.status_code == 400
    assert response.json() == {"error": "Métrica ou dimensão inválida"}
    assert query_engine.calls == []


def test_unknown_dimension_is_rejected(client, query_engine):
    response = client.post("/api/custom-query", json={"metric": "revenue", "dimension": "city"})

    assert response.status_code == 400
    assert query_engine.calls == []


def test_missing_metric_is_a_400(client, query_engine):
    response = client.post("/api/custom-query", json={"dimension": "channel"})

    assert response.status_code == 400
    assert "metric" in response.json()["details"]


def test_revenue_by_channel_with_filters(client, query_engine):
    query_engine.on("AS label", [
        {"label": "iFood", "value": Decimal("1500.5")},
        {"label": "Balcão", "value": None},
    ])

    response = client.post("/api/custom-query", json={
        "metric": "revenue",
        "dimension": "channel",
        "filters": {"period": "7d", "store": "3"},
    })

    assert response.status_code == 200
    assert response.json() == [{"label": "iFood", "value": 1500.5}, {"label": "Balcão", "value": None}]

    query, params, endpoint = query_engine.calls[0]
    assert endpoint == "custom-query"
    assert "c.name AS label" in query
    assert "SUM(s.total_amount) AS value" in query
    assert "GROUP BY c.name" in query
    assert "LIMIT 20" in query
    assert "product_sales" not in query
    assert params == [3]


def test_category_dimension_joins_products(client, query_engine):
    client.post("/api/custom-query", json={"metric": "orders", "dimension": "category"})

    query = query_engine.calls[0][0]
    assert "JOIN product_sales ps ON s.id = ps.sale_id" in query
    assert "LEFT JOIN categories cat ON p.category_id = cat.id" in query


def test_items_sold_metric_joins_products(client, query_engine):
    client.post("/api/custom-query", json={"metric": "items_sold", "dimension": "store"})

    query = query_engine.calls[0][0]
    assert "SUM(ps.quantity) AS value" in query
    assert "JOIN products p ON ps.product_id = p.id" in query


def test_payment_method_dimension_joins_payments(client, query_engine):
    client.post("/api/custom-query", json={"metric": "avg_ticket", "dimension": "payment_method"})

    query = query_engine.calls[0][0]
    assert "JOIN payments pay ON s.id = pay.sale_id" in query
    assert "pt.description AS label" in query


def test_invalid_filter_in_body_is_rejected(client, query_engine):
    response = client.post("/api/custom-query", json={
        "metric": "revenue",
        "dimension": "hour",
        "filters": {"period": "semana"},
    })

    assert response.status_code == 400
    assert query_engine.calls == []
