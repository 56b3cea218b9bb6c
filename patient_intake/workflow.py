"""
Patient Intake Workflow - Main Orchestrator

This is the PUBLIC API entry point. It wires configuration, the charting
client, the notifier and the batch controller into one object whose
lifetime matches one intake session.

Architecture Diagram:
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          IntakeWorkflow                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │   ┌────────────┐   ┌──────────────┐   ┌───────────┐   ┌──────────┐  │
    │   │ Validation │ → │ Batch Intake │ → │ Duplicate │ → │ Follow-  │  │
    │   │            │   │  Controller  │   │   Queue   │   │   ups    │  │
    │   └────────────┘   └──────┬───────┘   └───────────┘   └──────────┘  │
    │                           │                                         │
    │                    ┌──────┴───────┐                                 │
    │                    │  Diagnosis   │  (per-patient workspace)        │
    │                    │  Workspace   │                                 │
    │                    └──────────────┘                                 │
    └─────────────────────────────────────────────────────────────────────┘

Usage:
    from patient_intake import IntakeWorkflow

    async with IntakeWorkflow.from_environment() as workflow:
        await workflow.start(extracted_patients)
        report = await workflow.controller.save_all()
"""

import sys
from typing import Any, Callable, Dict, Iterable, Optional, Union

from loguru import logger

from patient_intake.clients.api_client import ChartingApiProtocol, HttpxChartingClient
from patient_intake.core.config import IntakeConfiguration
from patient_intake.core.exceptions import ConfigurationError
from patient_intake.core.models import DraftPatient
from patient_intake.intake.controller import BatchIntakeController
from patient_intake.notifications import NoticeSink, Notifier


def configure_logging(level: str = "INFO") -> None:
    """Route loguru output to stderr at ``level``."""
    logger.remove()
    logger.add(sys.stderr, level=level)


# =============================================================================
# STAGE 1: WORKFLOW CLASS
# =============================================================================


class IntakeWorkflow:
    """
    One batch intake session.

    What it does:
        Owns the charting client and the batch controller, loads reference
        data on start, and closes the client when the session ends.

    Why it exists:
        1. Simple API: callers build one object from the environment
        2. Resource ownership: the HTTP client is closed exactly once
        3. Testability: any ChartingApiProtocol can be injected

    Example:
        >>> workflow = IntakeWorkflow(config, client=fake_client)
        >>> await workflow.start([{"firstname": "Ann", "lastname": "Lee"}])
        >>> workflow.controller.page_label
        '1 / 2'
    """

    def __init__(
        self,
        config: IntakeConfiguration,
        client: Optional[ChartingApiProtocol] = None,
        notice_sink: Optional[NoticeSink] = None,
        on_refetch: Optional[Callable[[], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
    ):
        # =====================================================================
        # STAGE 1.1: CLIENT
        # =====================================================================
        self._config = config
        self._owns_client = client is None
        self._client = client if client is not None else self._create_client(config)

        # =====================================================================
        # STAGE 1.2: CONTROLLER
        # =====================================================================
        self._notifier = Notifier(sink=notice_sink)
        self._controller = BatchIntakeController(
            self._client,
            config=config,
            notifier=self._notifier,
            on_refetch=on_refetch,
            on_close=on_close,
        )

        logger.info(
            f"IntakeWorkflow initialized | "
            f"Max diagnoses: {config.max_diagnosis_count} | "
            f"Add to charges: {config.add_to_charges}"
        )

    @classmethod
    def from_environment(cls, env_file: Optional[str] = None, **kwargs: Any) -> "IntakeWorkflow":
        """Build a workflow from environment variables (and an optional .env file)."""
        config = IntakeConfiguration.from_environment(env_file=env_file)
        configure_logging(config.log_level)
        return cls(config, **kwargs)

    @staticmethod
    def _create_client(config: IntakeConfiguration) -> HttpxChartingClient:
        if not config.api_base_url:
            raise ConfigurationError(
                "Charting API URL not configured", context={"setting": "INTAKE_API_URL"}
            )
        return HttpxChartingClient(
            config.api_base_url,
            api_token=config.api_token,
            timeout=config.request_timeout,
        )

    # =========================================================================
    # STAGE 2: SESSION LIFECYCLE
    # =========================================================================

    async def start(self, patients: Iterable[Union[DraftPatient, Dict[str, Any]]]) -> None:
        """Load facilities and providers, then open the wizard on ``patients``."""
        await self._controller.load_reference_data()
        self._controller.initialize(patients)

    async def aclose(self) -> None:
        if self._owns_client and isinstance(self._client, HttpxChartingClient):
            await self._client.aclose()

    async def __aenter__(self) -> "IntakeWorkflow":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # =========================================================================
    # STAGE 3: PROPERTIES
    # =========================================================================

    @property
    def config(self) -> IntakeConfiguration:
        return self._config

    @property
    def controller(self) -> BatchIntakeController:
        return self._controller

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def client(self) -> ChartingApiProtocol:
        return self._client


# =============================================================================
# STAGE 4: SMOKE TEST
# =============================================================================

if __name__ == "__main__":
    import asyncio

    async def _smoke() -> None:
        async with IntakeWorkflow.from_environment() as workflow:
            print(f"   - API: {workflow.config.api_base_url}")
            await workflow.start([])
            print(f"   - Facilities: {len(workflow.controller.facilities)}")
            print(f"   - Providers: {len(workflow.controller.providers)}")

    print("\n--- Patient Intake Workflow Smoke Test ---\n")
    try:
        asyncio.run(_smoke())
        print("\n[OK] SMOKE TEST PASSED: Charting API reachable.")
    except Exception as e:
        print(f"\n[FAIL] SMOKE TEST FAILED: {e}")
        sys.exit(1)
