"""
Trigger kinds, their display styles, and the message helpers exposed to templates.

The status label and node fields live here rather than in template
conditionals so that operator templates get the same wording as the
built-in message.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


COLOR_GOOD = "good"
COLOR_WARNING = "warning"
COLOR_DANGER = "danger"


class TriggerKind(str, Enum):
    """Job lifecycle events raised by the orchestrator."""

    START = "start"
    SUCCESS = "success"
    FAILURE = "failure"
    AVERAGE_DURATION = "avgduration"
    RETRYABLE_FAILURE = "retryablefailure"


TRIGGER_COLORS = {
    TriggerKind.START: COLOR_WARNING,
    TriggerKind.SUCCESS: COLOR_GOOD,
    TriggerKind.FAILURE: COLOR_DANGER,
    TriggerKind.AVERAGE_DURATION: COLOR_WARNING,
    TriggerKind.RETRYABLE_FAILURE: COLOR_WARNING,
}

STATUS_LABELS = {
    TriggerKind.START: "Started",
    TriggerKind.FAILURE: "Failed",
    TriggerKind.AVERAGE_DURATION: "Average exceeded",
    TriggerKind.RETRYABLE_FAILURE: "Retry Failure",
}
DEFAULT_STATUS_LABEL = "Succeeded"

JOB_FAILED_NODES_FALLBACK = "- (Job itself failed)"


@dataclass(frozen=True)
class TriggerStyle:
    """Template name and attachment color used for one trigger."""

    template: str
    color: str


def parse_trigger(trigger: Optional[str]) -> Optional[TriggerKind]:
    """Return the TriggerKind for a trigger name, or None if unrecognized."""
    if trigger is None:
        return None
    try:
        return TriggerKind(trigger)
    except ValueError:
        return None


def build_trigger_styles(template_name: str) -> Dict[TriggerKind, TriggerStyle]:
    """Build the trigger-to-style table for one notification call."""
    return {
        kind: TriggerStyle(template=template_name, color=color)
        for kind, color in TRIGGER_COLORS.items()
    }


def status_label(trigger: Any) -> str:
    """Human-readable status for a trigger name."""
    kind = parse_trigger(str(trigger)) if trigger is not None else None
    return STATUS_LABELS.get(kind, DEFAULT_STATUS_LABEL)


def job_display_name(execution_data: Optional[Mapping[str, Any]]) -> str:
    """Return "group/name" for the job, or just the name when ungrouped."""
    job = (execution_data or {}).get("job") or {}
    name = str(job.get("name") or "")
    group = job.get("group")
    if group:
        return f"{group}/{name}"
    return name


def node_fields(trigger: Any, execution_data: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Extra attachment fields that depend on the trigger.

    Failures report the failed node list, successes the succeeded node list;
    other triggers add nothing.
    """
    data = execution_data or {}
    kind = parse_trigger(str(trigger)) if trigger is not None else None

    if kind in (TriggerKind.FAILURE, TriggerKind.RETRYABLE_FAILURE):
        failed = data.get("failedNodeListString") or JOB_FAILED_NODES_FALLBACK
        return [{"title": "Failed Nodes", "value": str(failed), "short": False}]

    if kind == TriggerKind.SUCCESS:
        succeeded = data.get("succeededNodeListString")
        if succeeded:
            return [{"title": "Succeeded Nodes", "value": str(succeeded), "short": False}]

    return []
