"""
Analytics Endpoint Tests
========================

WHAT: Row mapping, compiler choice, limit binding and caching for the
      sales, product, customer and operations endpoints.
WHY: Each widget reads specific pt-BR keys; the filter compiler's aliases
     (s, c, st) must resolve in every query.

REFERENCES:
- restaurant_analytics/routers/*.py
- restaurant_analytics/services/*_service.py
"""

import json
from datetime import datetime
from decimal import Decimal

EXCLUDE_CANCELLED = "s.sale_status_desc NOT IN ('CANCELADO','CANCELLED')"


class TestHealth:

    def test_root(self, client):
        assert client.get("/").json() == {"status": "ok", "message": "Restaurant Analytics API"}

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestFilterOptions:

    def test_lists_and_caches_options(self, client, query_engine):
        query_engine.on("FROM stores", [
            {"id": 1, "name": "Loja Centro", "city": "São Paulo", "state": "SP", "is_active": True},
        ])
        query_engine.on("FROM channels", [{"id": 2, "name": "iFood", "type": "D"}])
        query_engine.on("FROM sub_brands", [{"id": 3, "name": "Burger Lab"}])

        first = client.get("/api/filter-options")
        second = client.get("/api/filter-options")

        assert first.status_code == 200
        assert first.json() == {
            "stores": [{"id": 1, "name": "Loja Centro", "city": "São Paulo", "state": "SP", "is_active": True}],
            "channels": [{"id": 2, "name": "iFood", "type": "D"}],
            "subBrands": [{"id": 3, "name": "Burger Lab"}],
        }
        assert second.json() == first.json()
        assert len(query_engine.calls) == 3


class TestSalesEndpoints:

    def test_revenue_timeline(self, client, query_engine):
        query_engine.on("DATE_TRUNC", [
            {"date": datetime(2024, 3, 9), "value": Decimal("1520.40"), "pedidos": 38},
            {"date": datetime(2024, 3, 10), "value": None, "pedidos": 0},
        ])

        response = client.get("/api/revenue-timeline", params={"period": "7d"})

        assert response.json() == [
            {"date": "09/03", "value": 1520.4, "pedidos": 38},
            {"date": "10/03", "value": 0.0, "pedidos": 0},
        ]
        query, params, endpoint = query_engine.calls[0]
        assert endpoint == "revenue-timeline"
        assert f"WHERE {EXCLUDE_CANCELLED} AND s.created_at >= NOW() - INTERVAL '7 days'" in query

    def test_channel_distribution_shares(self, client, query_engine):
        query_engine.on("FROM sales s", [
            {"name": "Balcão", "type": "P", "pedidos": 30, "receita": Decimal("750"), "ticket_medio": Decimal("25")},
            {"name": "iFood", "type": "D", "pedidos": 10, "receita": Decimal("250"), "ticket_medio": Decimal("25")},
        ])

        body = client.get("/api/channel-distribution").json()

        assert [(row["name"], row["type"], row["percentual"]) for row in body] == [
            ("Balcão", "Presencial", 75),
            ("iFood", "Delivery", 25),
        ]
        assert body[0]["ticketMedio"] == 25.0

    def test_store_performance_uses_store_columns(self, client, query_engine):
        query_engine.on("FROM sales s", [{
            "name": "Loja Centro", "city": "São Paulo", "state": "SP", "pedidos": 12,
            "receita": Decimal("600"), "ticket_medio": Decimal("50"), "tempo_medio_producao": Decimal("900.7"),
        }])

        body = client.get("/api/store-performance").json()

        assert body == [{
            "name": "Loja Centro", "city": "São Paulo", "state": "SP", "pedidos": 12,
            "receita": 600.0, "ticketMedio": 50.0, "tempoMedioProducao": 900,
        }]
        assert "st.state" in query_engine.calls[0][0]

    def test_sales_by_hour_weekday_labels(self, client, query_engine):
        query_engine.on("EXTRACT(DOW", [
            {"dia_semana": Decimal("0"), "hora": Decimal("12"), "pedidos": 4, "receita": Decimal("120")},
            {"dia_semana": Decimal("6"), "hora": Decimal("20"), "pedidos": 9, "receita": Decimal("410")},
        ])

        body = client.get("/api/sales-by-hour").json()

        assert [(row["diaSemana"], row["hora"]) for row in body] == [("Dom", 12), ("Sáb", 20)]

    def test_payment_methods(self, client, query_engine):
        query_engine.on("FROM payments p", [
            {"metodo": "Pix", "is_online": True, "transacoes": 7, "valor_total": Decimal("315.5")},
        ])

        body = client.get("/api/payment-methods").json()

        assert body == [{"metodo": "Pix", "online": True, "transacoes": 7, "valor": 315.5}]

    def test_coupon_performance_keeps_channel_alias(self, client, query_engine):
        query_engine.on("FROM coupon_sales cs", [
            {"code": "BEMVINDO10", "discount_type": "p", "usos": 3,
             "desconto_total": Decimal("30"), "ticket_medio_com_cupom": Decimal("55")},
            {"code": "FRETE5", "discount_type": "f", "usos": 1,
             "desconto_total": Decimal("5"), "ticket_medio_com_cupom": None},
        ])

        response = client.get("/api/coupon-performance", params={"channel": "iFood"})

        assert [row["tipo"] for row in response.json()] == ["Percentual", "Fixo"]
        query, params, _ = query_engine.calls[0]
        assert "JOIN coupons cp ON cs.coupon_id = cp.id" in query
        assert "JOIN channels c ON s.channel_id = c.id" in query
        assert "c.name = $1" in query
        assert params == ["iFood"]

    def test_sales_endpoints_are_cached(self, client, query_engine):
        client.get("/api/payment-methods", params={"period": "7d"})
        client.get("/api/payment-methods", params={"period": "7d"})

        assert len(query_engine.calls) == 1

    def test_invalid_filter_is_rejected(self, client, query_engine):
        response = client.get("/api/revenue-timeline", params={"subBrand": "abc"})

        assert response.status_code == 400
        assert "subBrand" in response.json()["error"]
        assert query_engine.calls == []


class TestProductEndpoints:

    def test_top_products_binds_limit_after_filters(self, client, query_engine):
        query_engine.on("FROM product_sales ps", [{
            "name": "X-Burger", "categoria": "Lanches", "num_vendas": 40,
            "quantidade_total": Decimal("52"), "receita_total": Decimal("1560"), "preco_medio": Decimal("30"),
        }])

        response = client.get("/api/top-products", params={"store": "2", "limit": "5"})

        assert response.json() == [{
            "name": "X-Burger", "categoria": "Lanches", "vendas": 40,
            "quantidade": 52.0, "receita": 1560.0, "precoMedio": 30.0,
        }]
        query, params, _ = query_engine.calls[0]
        assert "st.id = $1" in query
        assert "LIMIT $2" in query
        assert params == [2, 5]

    def test_top_items_default_limit(self, client, query_engine):
        client.get("/api/top-items")

        query, params, _ = query_engine.calls[0]
        assert "LIMIT $1" in query
        assert params == [10]

    def test_top_products_cache_key_includes_limit(self, client, query_engine):
        client.get("/api/top-products", params={"limit": "5"})
        client.get("/api/top-products", params={"limit": "5", "store": "todas"})
        client.get("/api/top-products", params={"limit": "6"})

        assert [call[1] for call in query_engine.calls] == [[5], [6]]

    def test_limit_out_of_range_is_rejected(self, client, query_engine):
        too_small = client.get("/api/top-products", params={"limit": "0"})
        too_large = client.get("/api/profitable-products", params={"limit": "101"})

        assert too_small.status_code == 400
        assert "limit" in too_small.json()["details"]
        assert too_large.status_code == 400
        assert query_engine.calls == []

    def test_profitable_products(self, client, query_engine):
        query_engine.on("produto_dados", [{
            "id": 7, "name": "X-Burger", "categoria": "Lanches", "vendas": 40, "quantidade": Decimal("52"),
            "receita": Decimal("1560"), "preco_medio": Decimal("30"),
            "percentual_categoria": Decimal("0.6"), "ranking": 1,
        }])

        body = client.get("/api/profitable-products").json()

        assert body[0]["id"] == 1
        assert body[0]["percentual_categoria"] == 0.6
        assert query_engine.calls[0][1] == [20]

    def test_product_seasonality_runs_both_queries(self, client, query_engine):
        query_engine.on("produto_stats", [{"nome": "Açaí", "variacao": Decimal("1.75")}])
        query_engine.on("COUNT(DISTINCT ps.product_id)", [{
            "periodo": datetime(2024, 3, 9), "produtos_unicos": 12, "quantidade_total": Decimal("80"),
            "receita_total": Decimal("2400"), "total_pedidos": 50,
        }])

        body = client.get("/api/product-seasonality", params={"period": "30d"}).json()

        assert body == {
            "timeSeries": [{
                "periodo": "09/03/2024", "produtos_unicos": 12, "quantidade": 80.0,
                "receita": 2400.0, "vendas": 50,
            }],
            "top_sazonais": [{"nome": "Açaí", "variacao": 1.75}],
        }
        assert len(query_engine.calls) == 2

    def test_product_combinations(self, client, query_engine):
        query_engine.on("combinacoes", [{
            "produto_principal": "X-Burger", "item_combinado": "Batata", "frequencia": 12,
            "percentual_pedidos": Decimal("0.12"), "receita_total": Decimal("600"),
            "ticket_medio_combinacao": Decimal("50"), "preco_medio_principal": Decimal("30"),
            "preco_medio_combinado": None, "incremento_ticket": Decimal("20"),
            "score_combinacao": Decimal("9.6"),
        }])

        body = client.get("/api/product-combinations").json()

        assert body[0]["score"] == 9.6
        assert body[0]["preco_medio_combinado"] is None
        assert query_engine.calls[0][1] == [15]

    def test_category_performance(self, client, query_engine):
        query_engine.on("categoria_dados", [{
            "categoria": "Sem Categoria", "produtos_unicos": 3, "quantidade": Decimal("10"), "pedidos": 8,
            "receita": Decimal("200"), "ticket_medio": Decimal("20"), "percentual_receita": Decimal("0.25"),
        }])

        body = client.get("/api/category-performance").json()

        assert body == [{
            "categoria": "Sem Categoria", "produtos_unicos": 3, "quantidade": 10.0, "pedidos": 8,
            "receita": 200.0, "ticket_medio": 20.0, "percentual_receita": 0.25,
        }]


class TestCustomerEndpoints:

    def test_top_customers(self, client, query_engine):
        query_engine.on("FROM customers cu", [{
            "id": 42, "customer_name": None, "email": "ana@example.com", "phone_number": "11999990000",
            "total_pedidos": 9, "total_gasto": Decimal("450"), "ticket_medio": Decimal("50"),
            "ultima_compra": datetime(2024, 3, 5, 20, 30), "lojas_frequentadas": 2,
        }])

        response = client.get("/api/top-customers", params={"limit": "3"})

        assert response.json() == [{
            "id": 42,
            "name": "Cliente Não Identificado",
            "email": "ana@example.com",
            "phone": "11999990000",
            "totalPedidos": 9,
            "totalGasto": 450.0,
            "ticketMedio": 50.0,
            "ultimaCompra": "2024-03-05T20:30:00",
            "lojasFrequentadas": 2,
            "diasDesdeUltimaCompra": 10,
        }]
        query, params, _ = query_engine.calls[0]
        assert "JOIN channels c ON s.channel_id = c.id" in query
        assert params == [3]

    def test_customer_metrics_empty(self, client, query_engine):
        body = client.get("/api/customer-metrics").json()

        assert body["total_clientes"] == 0
        assert body["clientes_inativos"] == 0
        assert body["ticket_medio_geral"] == 0.0
        assert body["frequencia_media"] == 0.0

    def test_customer_metrics_filters_inside_cte(self, client, query_engine):
        client.get("/api/customer-metrics", params={"store": "4"})

        query, params, _ = query_engine.calls[0]
        split_at = query.index("FROM customer_last_purchase clp")
        cte, outer = query[:split_at], query[split_at:]
        assert "st.id = $1" in cte
        assert "$" not in outer
        assert params == [4]

    def test_customer_segmentation(self, client, query_engine):
        query_engine.on("customer_stats", [{
            "segmento": "VIP", "status_ativo": "Muito Ativo", "quantidade_clientes": 5,
            "media_pedidos": Decimal("12.4"), "media_gasto": Decimal("610.5"),
        }])

        body = client.get("/api/customer-segmentation").json()

        assert body == [{
            "segmento": "VIP", "status_ativo": "Muito Ativo", "quantidade_clientes": 5,
            "media_pedidos": 12.4, "media_gasto": 610.5,
        }]


class TestOperationsEndpoints:

    def test_operational_metrics_keeps_cancelled_sales(self, client, query_engine):
        query_engine.on("eficiencia_geral", [{
            "tempo_medio_producao": Decimal("1500"), "tempo_medio_entrega": Decimal("2100"),
            "taxa_cancelamento": Decimal("0.05"), "total_cancelamentos": 6,
            "pedidos_por_hora": Decimal("3.2"), "eficiencia_geral": Decimal("0.75"),
        }])

        response = client.get("/api/operational-metrics")

        assert response.json() == {
            "tempo_medio_producao": 1500.0,
            "tempo_medio_entrega": 2100.0,
            "taxa_cancelamento": 0.05,
            "total_cancelamentos": 6,
            "pedidos_por_hora": 3.2,
            "eficiencia_geral": 0.75,
        }
        query, params, _ = query_engine.calls[0]
        assert EXCLUDE_CANCELLED not in query
        assert params == [datetime(2024, 2, 15, 0, 0, 0), datetime(2024, 3, 15, 23, 59, 59, 999000)]

    def test_operational_metrics_id_lists(self, client, query_engine):
        client.get("/api/operational-metrics", params={"storeIds": "1,2", "period": "7d"})

        query, params, _ = query_engine.calls[0]
        assert "st.id = ANY($1)" in query
        assert params[0] == [1, 2]
        assert params[1] == datetime(2024, 3, 9, 0, 0, 0)

    def test_operational_by_hour_excludes_cancelled(self, client, query_engine):
        query_engine.on("GROUP BY EXTRACT(HOUR", [{
            "hora": Decimal("19"), "tempo_medio_producao": None, "tempo_medio_entrega": Decimal("1800.9"),
            "total_pedidos": 20, "cancelamentos": 0,
        }])

        body = client.get("/api/operational-by-hour").json()

        assert body == [{
            "hora": 19, "tempo_medio_producao": 0, "tempo_medio_entrega": 1800,
            "total_pedidos": 20, "cancelamentos": 0,
        }]
        assert EXCLUDE_CANCELLED in query_engine.calls[0][0]

    def test_cancellation_metrics_decodes_json_columns(self, client, query_engine):
        query_engine.on("metricas_gerais", [{
            "total_pedidos": 100,
            "total_cancelamentos": 4,
            "taxa_cancelamento_geral": Decimal("0.04"),
            "cancelamentos_por_motivo": json.dumps([{"motivo": "Cliente desistiu", "quantidade": 3}]),
            "cancelamentos_por_hora": [
                {"hora": 12, "total_hora": 40, "cancelamentos_hora": 2, "taxa_cancelamento": 0.05},
            ],
        }])

        response = client.get("/api/cancellation-metrics", params={"startDate": "2024-03-01", "endDate": "2024-03-07"})

        assert response.json() == {
            "total_pedidos": 100,
            "total_cancelamentos": 4,
            "taxa_cancelamento_geral": 0.04,
            "cancelamentos_por_motivo": [{"motivo": "Cliente desistiu", "quantidade": 3}],
            "cancelamentos_por_hora": [
                {"hora": 12, "total_hora": 40, "cancelamentos_hora": 2, "taxa_cancelamento": 0.05},
            ],
        }
        assert query_engine.calls[0][1] == [
            datetime(2024, 3, 1, 0, 0, 0),
            datetime(2024, 3, 7, 23, 59, 59, 999000),
        ]

    def test_cancellation_metrics_without_sales(self, client, query_engine):
        body = client.get("/api/cancellation-metrics").json()

        assert body["total_pedidos"] == 0
        assert body["cancelamentos_por_motivo"] == []
        assert body["cancelamentos_por_hora"] == []
