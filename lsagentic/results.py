"""Result objects recorded for every step a proposal runs."""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .kube import AlreadyExistsError, ApiError, truncate_k8s_name
from .sandbox import LABEL_PROPOSAL, LABEL_STEP

API_VERSION = "agentic.openshift.io/v1alpha1"

RESULT_CONDITION_STARTED = "Started"
RESULT_CONDITION_COMPLETED = "Completed"
RESULT_REASON_STEP_STARTED = "StepStarted"
RESULT_REASON_SUCCEEDED = "Succeeded"
RESULT_REASON_FAILED = "Failed"

ACTION_OUTCOME_SUCCEEDED = "Succeeded"
ACTION_OUTCOME_FAILED = "Failed"


@dataclass
class AnalysisOutput:
    """What the analysis agent returned."""

    success: bool
    options: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ExecutionOutput:
    """What the execution agent returned."""

    success: bool
    actions_taken: list[dict[str, Any]] = field(default_factory=list)
    verification: dict[str, Any] = field(default_factory=dict)


@dataclass
class VerificationOutput:
    """What the verification agent returned."""

    success: bool
    checks: list[dict[str, Any]] = field(default_factory=list)
    summary: str = ""


@dataclass
class EscalationOutput:
    """What the escalation agent returned."""

    success: bool
    summary: str = ""
    content: str = ""


def _timestamp(value: datetime | str) -> str:
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return value


def _outcome_from_bool(success: bool) -> str:
    return ACTION_OUTCOME_SUCCEEDED if success else ACTION_OUTCOME_FAILED


def result_cr_name(proposal_name: str, step: str, index: int) -> str:
    """Return the name of the index-th result object of a step."""
    return truncate_k8s_name(f"{proposal_name}-{step}-{index}")


def proposal_owner_ref(proposal: Mapping[str, Any]) -> dict[str, Any]:
    """Return an owner reference making the proposal the controller of an object."""
    metadata = proposal.get("metadata") or {}
    return {
        "apiVersion": API_VERSION,
        "kind": "Proposal",
        "name": metadata.get("name", ""),
        "uid": metadata.get("uid", ""),
        "controller": True,
        "blockOwnerDeletion": True,
    }


def result_labels(proposal_name: str, step: str) -> dict[str, str]:
    """Return the labels tying a result to its proposal and step."""
    return {LABEL_PROPOSAL: proposal_name, LABEL_STEP: step}


def _steps(proposal: Mapping[str, Any]) -> Mapping[str, Any]:
    return (proposal.get("status") or {}).get("steps") or {}


def execution_retry_index(proposal: Mapping[str, Any]) -> int:
    """Return the execution retry count of a proposal, 0 when unset."""
    retry_count = (_steps(proposal).get("execution") or {}).get("retryCount")
    return retry_count if retry_count is not None else 0


def result_conditions(
    start_time: datetime | str | None,
    completion_time: datetime | str,
    outcome: str,
) -> list[dict[str, Any]]:
    """Return the Started (when known) and Completed conditions of a result."""
    conditions = []
    if start_time is not None:
        conditions.append(
            {
                "type": RESULT_CONDITION_STARTED,
                "status": "True",
                "lastTransitionTime": _timestamp(start_time),
                "reason": RESULT_REASON_STEP_STARTED,
            }
        )
    reason = (
        RESULT_REASON_SUCCEEDED
        if outcome == ACTION_OUTCOME_SUCCEEDED
        else RESULT_REASON_FAILED
    )
    conditions.append(
        {
            "type": RESULT_CONDITION_COMPLETED,
            "status": "True",
            "lastTransitionTime": _timestamp(completion_time),
            "reason": reason,
        }
    )
    return conditions


def create_idempotent(client: Any, obj: Mapping[str, Any], kind: str) -> None:
    """Create an object, then write its full status.

    The API drops status on create, so it is written by a follow-up status
    patch. An object that already exists is left as it is.
    """
    with_status = copy.deepcopy(dict(obj))
    name = (obj.get("metadata") or {}).get("name", "")
    try:
        created = client.create(obj)
    except AlreadyExistsError:
        return
    except ApiError as err:
        raise ApiError(f"create {kind} {name}: {err}") from err

    resource_version = ((created or {}).get("metadata") or {}).get("resourceVersion")
    if resource_version is not None:
        with_status.setdefault("metadata", {})["resourceVersion"] = resource_version
    try:
        client.patch_status(with_status)
    except ApiError as err:
        raise ApiError(f"patch {kind} {name} status: {err}") from err


def _create_result(
    client: Any,
    proposal: Mapping[str, Any],
    *,
    step: str,
    kind: str,
    success: bool | None,
    spec_fields: Mapping[str, Any],
    status_fields: Mapping[str, Any],
    sandbox: Mapping[str, Any] | None,
    start_time: datetime | str | None,
    completion_time: datetime | str | None,
    failure_reason: str,
) -> str:
    metadata = proposal.get("metadata") or {}
    proposal_name = metadata.get("name", "")
    previous = (_steps(proposal).get(step) or {}).get("results") or []
    name = result_cr_name(proposal_name, step, len(previous) + 1)

    outcome = ACTION_OUTCOME_FAILED if success is None else _outcome_from_bool(success)
    completed_at = completion_time if completion_time is not None else datetime.now(timezone.utc)

    status: dict[str, Any] = {
        "conditions": result_conditions(start_time, completed_at, outcome),
        "sandbox": dict(sandbox or {}),
    }
    if failure_reason:
        status["failureReason"] = failure_reason
    status.update(status_fields)

    cr = {
        "apiVersion": API_VERSION,
        "kind": kind,
        "metadata": {
            "name": name,
            "namespace": metadata.get("namespace", ""),
            "labels": result_labels(proposal_name, step),
            "ownerReferences": [proposal_owner_ref(proposal)],
        },
        "spec": {"proposalName": proposal_name, **spec_fields},
        "status": status,
    }
    create_idempotent(client, cr, kind)
    return name


def create_analysis_result(
    client: Any,
    proposal: Mapping[str, Any],
    result: AnalysisOutput | None,
    sandbox: Mapping[str, Any] | None,
    start_time: datetime | str | None = None,
    completion_time: datetime | str | None = None,
    failure_reason: str = "",
) -> str:
    """Record an analysis attempt and return the result's name."""
    status = {"options": list(result.options)} if result is not None else {}
    return _create_result(
        client,
        proposal,
        step="analysis",
        kind="AnalysisResult",
        success=result.success if result is not None else None,
        spec_fields={},
        status_fields=status,
        sandbox=sandbox,
        start_time=start_time,
        completion_time=completion_time,
        failure_reason=failure_reason,
    )


def create_execution_result(
    client: Any,
    proposal: Mapping[str, Any],
    result: ExecutionOutput | None,
    sandbox: Mapping[str, Any] | None,
    start_time: datetime | str | None = None,
    completion_time: datetime | str | None = None,
    failure_reason: str = "",
) -> str:
    """Record an execution attempt and return the result's name."""
    status: dict[str, Any] = {}
    if result is not None:
        status["actionsTaken"] = list(result.actions_taken)
        if result.verification:
            status["verification"] = dict(result.verification)
    return _create_result(
        client,
        proposal,
        step="execution",
        kind="ExecutionResult",
        success=result.success if result is not None else None,
        spec_fields={"retryIndex": execution_retry_index(proposal)},
        status_fields=status,
        sandbox=sandbox,
        start_time=start_time,
        completion_time=completion_time,
        failure_reason=failure_reason,
    )


def create_verification_result(
    client: Any,
    proposal: Mapping[str, Any],
    result: VerificationOutput | None,
    sandbox: Mapping[str, Any] | None,
    start_time: datetime | str | None = None,
    completion_time: datetime | str | None = None,
    failure_reason: str = "",
) -> str:
    """Record a verification attempt and return the result's name."""
    status: dict[str, Any] = {}
    if result is not None:
        status["checks"] = list(result.checks)
        status["summary"] = result.summary
    return _create_result(
        client,
        proposal,
        step="verification",
        kind="VerificationResult",
        success=result.success if result is not None else None,
        spec_fields={"retryIndex": execution_retry_index(proposal)},
        status_fields=status,
        sandbox=sandbox,
        start_time=start_time,
        completion_time=completion_time,
        failure_reason=failure_reason,
    )


def create_escalation_result(
    client: Any,
    proposal: Mapping[str, Any],
    result: EscalationOutput | None,
    sandbox: Mapping[str, Any] | None,
    start_time: datetime | str | None = None,
    completion_time: datetime | str | None = None,
    failure_reason: str = "",
) -> str:
    """Record an escalation attempt and return the result's name."""
    status: dict[str, Any] = {}
    if result is not None:
        status["summary"] = result.summary
        status["content"] = result.content
    return _create_result(
        client,
        proposal,
        step="escalation",
        kind="EscalationResult",
        success=result.success if result is not None else None,
        spec_fields={},
        status_fields=status,
        sandbox=sandbox,
        start_time=start_time,
        completion_time=completion_time,
        failure_reason=failure_reason,
    )


__all__: Sequence[str] = (
    "AnalysisOutput",
    "ExecutionOutput",
    "VerificationOutput",
    "EscalationOutput",
    "result_cr_name",
    "proposal_owner_ref",
    "result_labels",
    "execution_retry_index",
    "result_conditions",
    "create_idempotent",
    "create_analysis_result",
    "create_execution_result",
    "create_verification_result",
    "create_escalation_result",
)