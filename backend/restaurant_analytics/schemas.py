"""Pydantic schemas for request/response payloads.

Field names follow the JSON contract the React dashboard reads, which is
pt-BR camelCase (``faturamento``, ``ticketMedio``...).
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(
        description="Service status",
        example="ok"
    )


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""

    error: str = Field(description="User-facing error message")
    details: Optional[str] = Field(default=None, description="Technical detail, when available")


class GrowthRates(BaseModel):
    """Percentage change vs the previous equal-length period (1 decimal)."""

    faturamento: float = Field(description="Revenue growth in percent", example=25.0)
    pedidos: float = Field(description="Order count growth in percent", example=-3.2)


class MetricsResponse(BaseModel):
    """
    Headline metric cards.

    Current-period aggregates with NULL read as zero; integer fields are
    truncated (average production / delivery seconds).
    """

    faturamento: float = Field(description="Sum of sale totals")
    pedidos: int = Field(description="Distinct sales")
    ticketMedio: float = Field(description="Average sale total")
    clientes: int = Field(description="Distinct customers")
    taxasEntrega: float = Field(description="Sum of delivery fees")
    descontos: float = Field(description="Sum of discounts")
    tempoMedioProducao: int = Field(description="Average production time (seconds)")
    tempoMedioEntrega: int = Field(description="Average delivery time (seconds)")
    crescimento: GrowthRates

    model_config = {
        "json_schema_extra": {
            "example": {
                "faturamento": 10000.0,
                "pedidos": 250,
                "ticketMedio": 40.0,
                "clientes": 180,
                "taxasEntrega": 850.5,
                "descontos": 320.0,
                "tempoMedioProducao": 1140,
                "tempoMedioEntrega": 1980,
                "crescimento": {"faturamento": 25.0, "pedidos": 12.5},
            }
        }
    }


class CustomQueryRequest(BaseModel):
    """
    Payload for the flexible "metric by dimension" chart.

    metric and dimension are checked against the service allowlists so an
    unknown name yields the API's 400 envelope instead of a 422.
    """

    metric: str = Field(description="Metric key", example="revenue")
    dimension: str = Field(description="Dimension key", example="channel")
    aggregation: Optional[str] = Field(default=None, description="Accepted for compatibility; the metric defines its aggregate")
    filters: Dict[str, Any] = Field(default_factory=dict, description="Same filter keys as the query-string endpoints")

    model_config = {
        "json_schema_extra": {
            "example": {
                "metric": "revenue",
                "dimension": "channel",
                "filters": {"period": "30d", "store": "todas"},
            }
        }
    }


class CustomQueryRow(BaseModel):
    label: Any
    value: Optional[float] = None
