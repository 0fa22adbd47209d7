from pydantic import BaseModel, ConfigDict, Field

from invocursor.execution.runner import RunEvent
from invocursor.models.enums import RunEventKind


class WidgetMetrics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    counters: dict[str, int] = Field(
        default_factory=dict, description="Named counters for widget outcomes."
    )

    def inc(self, key: str, n: int = 1) -> None:
        self.counters[key] = int(self.counters.get(key, 0)) + n

    def record_event(self, event: RunEvent) -> None:
        """Counts the outcome carried by a runner event."""
        if event.kind == RunEventKind.PLAN:
            self.inc("plan.started")
        elif event.kind == RunEventKind.STEP_FINISHED:
            self.inc("step.succeeded" if event.success else "step.failed")
        elif event.kind == RunEventKind.SKIPPED:
            self.inc("plan.skipped")
        elif event.kind == RunEventKind.CANCELLED:
            self.inc("plan.cancelled")
        elif event.kind == RunEventKind.COMPLETE:
            self.inc("plan.completed")
        elif event.kind == RunEventKind.FAILED:
            self.inc("plan.failed")

    def render_markdown(self) -> str:
        if not self.counters:
            return "No metrics yet."
        lines = ["### Metrics"]
        for k in sorted(self.counters.keys()):
            lines.append(f"- **{k}**: {self.counters[k]}")
        return "\n".join(lines)
