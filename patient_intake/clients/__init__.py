"""
Clients Layer - Charting API Abstractions

This layer hides the collaborating services behind one protocol so the
workflow components never deal with HTTP.

Submodules:
    api_client.py → Protocol, base implementation and httpx client
    schemas.py    → Pydantic wire schemas converted to domain models
"""

from patient_intake.clients.api_client import (
    ApiResponse,
    BaseChartingClient,
    ChartingApiProtocol,
    HttpxChartingClient,
    build_patient_form,
)

__all__ = [
    "ApiResponse",
    "BaseChartingClient",
    "ChartingApiProtocol",
    "HttpxChartingClient",
    "build_patient_form",
]
