# repo_indexer/services/steps.py
"""Best-effort side effects run as independent steps collected into a report."""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    name: str
    ok: bool
    value: Any = None
    error: str | None = None

    def to_dict(self) -> dict:
        data = {"name": self.name, "ok": self.ok}
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class SideEffectReport:
    steps: list[StepResult] = field(default_factory=list)

    async def run(self, name: str, awaitable: Awaitable) -> StepResult:
        """Await one step; an exception becomes a failed result, never propagates."""
        try:
            value = await awaitable
        except Exception as e:
            logger.warning("Step %s failed: %s", name, e)
            result = StepResult(name=name, ok=False, error=str(e))
        else:
            result = StepResult(name=name, ok=True, value=value)
        self.steps.append(result)
        return result

    def record(self, name: str, ok: bool, value: Any = None, error: str | None = None) -> StepResult:
        result = StepResult(name=name, ok=ok, value=value, error=error)
        self.steps.append(result)
        return result

    def skip(self, name: str, reason: str) -> StepResult:
        logger.info("Step %s skipped: %s", name, reason)
        return self.record(name, ok=True, value=None, error=None)

    @property
    def failed(self) -> list[StepResult]:
        return [s for s in self.steps if not s.ok]

    def to_list(self) -> list[dict]:
        return [s.to_dict() for s in self.steps]
