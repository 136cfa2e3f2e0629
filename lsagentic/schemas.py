"""JSON Schemas sent to the agent to enforce structured output per step."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from enum import Enum
from typing import Any


class AnalysisOutputMode(str, Enum):
    DEFAULT = "Default"
    MINIMAL = "Minimal"


_API_GROUPS_DESCRIPTION = (
    "API groups (e.g., '', 'apps', 'batch'). Use empty string '' for the core "
    "API group (pods, services, configmaps, etc.)"
)
_RESOURCE_NAMES_DESCRIPTION = (
    "Restrict to specific named resources. Omit to allow all resources of the given type"
)
_VERBS_DESCRIPTION = "Allowed operations (e.g., 'get', 'list', 'patch', 'delete')"


def _string(description: str, enum: list[str] | None = None) -> dict[str, Any]:
    prop: dict[str, Any] = {"type": "string"}
    if enum is not None:
        prop["enum"] = enum
    prop["description"] = description
    return prop


def _string_array(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


ANALYSIS_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "options": {
            "type": "array",
            "description": "One or more remediation options, ordered by recommendation. Provide at least one.",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "title": _string(
                        "Short human-readable title for this option (e.g., 'Increase memory limit', 'Scale horizontally')"
                    ),
                    "summary": _string("Brief one-paragraph summary of this remediation approach"),
                    "diagnosis": {
                        "type": "object",
                        "properties": {
                            "summary": _string(
                                "Markdown-formatted root cause analysis explaining the problem, symptoms, and findings"
                            ),
                            "confidence": _string(
                                "Your confidence in this diagnosis. Low: ambiguous symptoms. Medium: likely cause identified. High: clear, deterministic root cause",
                                ["Low", "Medium", "High"],
                            ),
                            "rootCause": _string(
                                "Concise one-line root cause (e.g., 'OOMKilled due to memory limit of 256Mi')"
                            ),
                        },
                        "required": ["summary", "confidence", "rootCause"],
                    },
                    "proposal": {
                        "type": "object",
                        "properties": {
                            "description": _string(
                                "Markdown-formatted summary of the overall remediation approach"
                            ),
                            "actions": {
                                "type": "array",
                                "description": "Ordered list of discrete actions to perform",
                                "items": {
                                    "type": "object",
                                    "properties": {
                                        "type": _string(
                                            "Action category (e.g., 'patch', 'scale', 'restart', 'create', 'delete', 'rollout')"
                                        ),
                                        "description": _string(
                                            "What this action does (e.g., 'Increase memory limit from 256Mi to 512Mi')"
                                        ),
                                    },
                                    "required": ["type", "description"],
                                },
                            },
                            "risk": _string(
                                "Risk assessment. Low: safe to apply. Medium: review recommended. High: careful review required. Critical: manual approval strongly recommended",
                                ["Low", "Medium", "High", "Critical"],
                            ),
                            "reversible": _string(
                                "Whether this remediation can be rolled back. Reversible: fully undoable. Irreversible: cannot undo. Partial: some actions undoable",
                                ["Reversible", "Irreversible", "Partial"],
                            ),
                            "estimatedImpact": _string(
                                "Expected impact on the system (e.g., 'Brief pod restart, ~30s downtime')"
                            ),
                            "rollbackPlan": {
                                "type": "object",
                                "description": "How to undo the remediation if it fails or causes issues. Required when reversible is Reversible or Partial.",
                                "properties": {
                                    "description": _string(
                                        "How to undo the remediation if it fails or causes issues"
                                    ),
                                    "command": _string("The rollback command or steps to execute"),
                                },
                                "required": ["description", "command"],
                            },
                        },
                        "required": ["description", "actions", "risk", "reversible"],
                    },
                    "verification": {
                        "type": "object",
                        "properties": {
                            "description": _string("Summary of how to verify the remediation worked"),
                            "steps": {
                                "type": "array",
                                "description": "Ordered verification checks for the verification agent to run after execution",
                                "items": {
                                    "type": "object",
                                    "properties": {
                                        "name": _string(
                                            "Short check identifier (e.g., 'pod-running', 'memory-usage-normal')"
                                        ),
                                        "command": _string(
                                            "Command or API call to run (e.g., 'oc get pod -n production -l app=web -o jsonpath={.status.phase}')"
                                        ),
                                        "expected": _string(
                                            "Expected output or condition (e.g., 'Running', 'ready=true')"
                                        ),
                                        "type": _string(
                                            "Check category (e.g., 'command', 'metric', 'condition')"
                                        ),
                                    },
                                },
                            },
                        },
                    },
                    "rbac": {
                        "type": "object",
                        "properties": {
                            "namespaceScoped": {
                                "type": "array",
                                "description": "RBAC rules scoped to the proposal's target namespaces",
                                "items": {
                                    "type": "object",
                                    "properties": {
                                        "namespace": _string(
                                            "Target namespace for this rule. Must match one of the proposal's targetNamespaces"
                                        ),
                                        "apiGroups": _string_array(_API_GROUPS_DESCRIPTION),
                                        "resources": _string_array(
                                            "Resource types (e.g., 'pods', 'deployments', 'configmaps')"
                                        ),
                                        "resourceNames": _string_array(_RESOURCE_NAMES_DESCRIPTION),
                                        "verbs": _string_array(_VERBS_DESCRIPTION),
                                        "justification": _string(
                                            "Why this permission is needed (e.g., 'Need to patch deployment to increase memory limit')"
                                        ),
                                    },
                                    "required": ["apiGroups", "resources", "verbs", "justification"],
                                },
                            },
                            "clusterScoped": {
                                "type": "array",
                                "description": "RBAC rules for cluster-wide or non-namespaced resources (e.g., nodes, CRDs)",
                                "items": {
                                    "type": "object",
                                    "properties": {
                                        "apiGroups": _string_array(_API_GROUPS_DESCRIPTION),
                                        "resources": _string_array(
                                            "Resource types (e.g., 'nodes', 'clusterroles')"
                                        ),
                                        "resourceNames": _string_array(_RESOURCE_NAMES_DESCRIPTION),
                                        "verbs": _string_array(_VERBS_DESCRIPTION),
                                        "justification": _string("Why this permission is needed"),
                                    },
                                    "required": ["apiGroups", "resources", "verbs", "justification"],
                                },
                            },
                        },
                    },
                },
                "required": ["title", "diagnosis", "proposal", "verification"],
            },
        }
    },
    "required": ["options"],
}

MINIMAL_ANALYSIS_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "options": {
            "type": "array",
            "description": "One or more output options, ordered by recommendation. Provide at least one.",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "title": _string("Short human-readable title for this option"),
                },
                "required": ["title"],
            },
        }
    },
    "required": ["options"],
}

EXECUTION_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "success": {
            "type": "boolean",
            "description": "Whether all execution actions completed successfully",
        },
        "actionsTaken": {
            "type": "array",
            "description": "List of actions actually performed, in order",
            "items": {
                "type": "object",
                "properties": {
                    "type": _string("Action category (e.g., 'patch', 'scale', 'restart')"),
                    "description": _string(
                        "What was done (e.g., 'Patched deployment/web to set memory limit to 512Mi')"
                    ),
                    "outcome": _string(
                        "Whether this individual action succeeded or failed",
                        ["Succeeded", "Failed"],
                    ),
                    "output": _string("Command output or API response from the action"),
                    "error": _string("Error message if the action failed"),
                },
                "required": ["type", "description", "outcome"],
            },
        },
        "verification": {
            "type": "object",
            "description": "Lightweight inline verification performed immediately after execution",
            "properties": {
                "conditionOutcome": _string(
                    "Whether the target condition improved after remediation",
                    ["Improved", "Unchanged", "Degraded"],
                ),
                "summary": _string(
                    "Brief inline verification summary of what you observed after applying the fix"
                ),
            },
        },
    },
    "required": ["success", "actionsTaken"],
}

VERIFICATION_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "success": {"type": "boolean", "description": "Whether all verification checks passed"},
        "checks": {
            "type": "array",
            "description": "Individual verification check results",
            "items": {
                "type": "object",
                "properties": {
                    "name": _string(
                        "Check identifier matching the analysis verification plan (e.g., 'pod-running')"
                    ),
                    "source": _string(
                        "The full command that was run (e.g., 'oc get pod -n production -o jsonpath={.status.phase}', 'promql: rate(container_cpu_usage_seconds_total[5m])')"
                    ),
                    "value": _string("Actual observed value (e.g., 'Running', '3 replicas')"),
                    "result": _string(
                        "Whether the observed value matches expectations", ["Passed", "Failed"]
                    ),
                },
                "required": ["name", "result"],
            },
        },
        "summary": _string("Overall verification summary in Markdown"),
    },
    "required": ["success", "checks", "summary"],
}

ESCALATION_OUTPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "success": {
            "type": "boolean",
            "description": "Whether the escalation analysis completed successfully",
        },
        "summary": _string("Markdown summary of the escalation analysis and recommendations"),
        "content": _string(
            "Detailed escalation content: root cause analysis across all failed attempts, recommended next steps, and any information for the escalation target"
        ),
    },
    "required": ["success", "summary", "content"],
}

DEFAULT_OUTPUT_SCHEMAS: dict[str, dict[str, Any]] = {
    "analysis": ANALYSIS_OUTPUT_SCHEMA,
    "execution": EXECUTION_OUTPUT_SCHEMA,
    "verification": VERIFICATION_OUTPUT_SCHEMA,
    "escalation": ESCALATION_OUTPUT_SCHEMA,
}


def _option_items(schema: dict[str, Any]) -> dict[str, Any]:
    return schema["properties"]["options"]["items"]


def _builtin_property(name: str) -> dict[str, Any]:
    return copy.deepcopy(_option_items(ANALYSIS_OUTPUT_SCHEMA)["properties"][name])


def _is_zero(value: Any) -> bool:
    if isinstance(value, Mapping):
        return all(_is_zero(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return not value
    return not value


def step_is_zero(step: Mapping[str, Any] | None) -> bool:
    """Return True when a proposal step is absent or holds only empty values."""
    return step is None or _is_zero(step)


def output_schema_for_step(
    step_name: str, proposal: Mapping[str, Any] | None
) -> dict[str, Any] | None:
    """Return the output schema for a step, or None for an unknown step.

    For analysis the schema depends on the proposal's analysisOutput mode,
    on which later steps the proposal has, and on an optional custom schema
    injected as a required "components" property of each option.
    """
    if step_name != "analysis":
        schema = DEFAULT_OUTPUT_SCHEMAS.get(step_name)
        return copy.deepcopy(schema) if schema is not None else None

    spec = (proposal or {}).get("spec") or {}
    analysis_output = spec.get("analysisOutput") or {}
    mode = analysis_output.get("mode") or AnalysisOutputMode.DEFAULT
    custom_schema = analysis_output.get("schema")
    minimal = mode == AnalysisOutputMode.MINIMAL

    schema = copy.deepcopy(
        MINIMAL_ANALYSIS_OUTPUT_SCHEMA if minimal else ANALYSIS_OUTPUT_SCHEMA
    )
    items = _option_items(schema)
    props = items["properties"]

    required = ["title"]
    if mode == AnalysisOutputMode.DEFAULT:
        required += ["diagnosis", "proposal"]

    if not step_is_zero(spec.get("execution")):
        if minimal:
            props["proposal"] = _builtin_property("proposal")
            props["rbac"] = _builtin_property("rbac")
            required.append("proposal")
        required.append("rbac")

    if not step_is_zero(spec.get("verification")):
        if minimal:
            props["verification"] = _builtin_property("verification")
        required.append("verification")

    if custom_schema is not None:
        props["components"] = copy.deepcopy(custom_schema)
        required.append("components")

    items["required"] = required
    return schema