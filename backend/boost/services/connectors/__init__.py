from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Tuple
import logging

from .base import BaseConnector, ConnectorError, ConnectorResult
from .tavily import TavilyConnector

logger = logging.getLogger(__name__)

PlanStep = Dict[str, Any]


class ConnectorRunner:
    """
    Registry + executor for connectors.

    Plan steps have shape {"name": str, "connector": str, "params": dict}.
    All steps run concurrently; a failing step yields an empty result and an
    entry in the returned error list while the others complete normally.
    """

    def __init__(self, connectors: Dict[str, BaseConnector] | None = None) -> None:
        self._connectors: Dict[str, BaseConnector] = connectors or {
            "tavily": TavilyConnector(),
        }

    def _get_connector(self, name: str) -> BaseConnector | None:
        return self._connectors.get(name)

    async def _run_step(self, step: PlanStep) -> ConnectorResult:
        name = step.get("name") or "unnamed_step"
        connector = self._get_connector(step.get("connector") or "")
        if connector is None:
            raise ConnectorError(f"No connector registered for step '{name}'")

        res = await connector.fetch(**(step.get("params") or {}))
        logger.info(
            "Connector '%s' completed step '%s'",
            connector.name,
            name,
            extra={"connector": connector.name, "step": name},
        )
        return res

    async def execute_plan_async(
        self, plan: List[PlanStep]
    ) -> Tuple[Dict[str, Dict[str, Any]], List[str]]:
        names = [step.get("name") or "unnamed_step" for step in plan]
        outcomes = await asyncio.gather(
            *(self._run_step(step) for step in plan),
            return_exceptions=True,
        )

        results: Dict[str, Dict[str, Any]] = {}
        errors: List[str] = []
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Step '%s' failed: %s",
                    name,
                    outcome,
                    extra={"step": name},
                )
                errors.append(f"{name}: {outcome}")
                results[name] = {}
            else:
                results[name] = dict(outcome)
        return results, errors

    def execute_plan(
        self, plan: List[PlanStep]
    ) -> Tuple[Dict[str, Dict[str, Any]], List[str]]:
        """Synchronous wrapper for Celery workers."""
        return asyncio.run(self.execute_plan_async(plan))


def get_connectors() -> ConnectorRunner:
    return ConnectorRunner()


__all__ = [
    "BaseConnector",
    "ConnectorError",
    "ConnectorResult",
    "ConnectorRunner",
    "TavilyConnector",
    "get_connectors",
]
