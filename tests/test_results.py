from datetime import datetime, timezone

import pytest

from lsagentic.kube import MemoryClient
from lsagentic.results import (
    AnalysisOutput,
    EscalationOutput,
    ExecutionOutput,
    VerificationOutput,
    create_analysis_result,
    create_escalation_result,
    create_execution_result,
    create_idempotent,
    create_verification_result,
    execution_retry_index,
    proposal_owner_ref,
    result_conditions,
    result_cr_name,
    result_labels,
)

NOW = "2024-01-01T00:00:00Z"


def _proposal(**status_steps):
    return {
        "apiVersion": "agentic.openshift.io/v1alpha1",
        "kind": "Proposal",
        "metadata": {"name": "p1", "namespace": "default", "uid": "uid-1"},
        "spec": {"request": "fix it"},
        "status": {"steps": status_steps},
    }


def _client(*kinds, objects=()):
    return MemoryClient(objects=objects, status_subresources=kinds)


def test_create_idempotent_status_fields_written():
    client = _client("AnalysisResult")
    cr = {
        "kind": "AnalysisResult",
        "metadata": {"name": "test-analysis-1", "namespace": "default"},
        "spec": {"proposalName": "test-proposal"},
        "status": {
            "conditions": [
                {"type": "Completed", "status": "True", "reason": "Succeeded", "lastTransitionTime": NOW}
            ],
            "options": [{"title": "Increase memory limit", "summary": "Bump to 512Mi"}],
            "sandbox": {"claimName": "test-sandbox", "namespace": "openshift-lightspeed"},
        },
    }
    create_idempotent(client, cr, "AnalysisResult")

    got = client.get("AnalysisResult", "test-analysis-1", "default")
    assert got["spec"]["proposalName"] == "test-proposal"
    assert len(got["status"]["options"]) == 1
    assert got["status"]["options"][0]["title"] == "Increase memory limit"
    assert got["status"]["sandbox"]["claimName"] == "test-sandbox"
    assert len(got["status"]["conditions"]) == 1
    assert got["status"]["conditions"][0]["reason"] == "Succeeded"


def test_create_idempotent_already_exists_keeps_status():
    existing = {
        "kind": "AnalysisResult",
        "metadata": {"name": "test-analysis-1", "namespace": "default"},
        "spec": {"proposalName": "test-proposal"},
    }
    client = _client("AnalysisResult", objects=[existing])
    cr = {
        "kind": "AnalysisResult",
        "metadata": {"name": "test-analysis-1", "namespace": "default"},
        "spec": {"proposalName": "test-proposal"},
        "status": {"options": [{"title": "Should not overwrite"}]},
    }
    create_idempotent(client, cr, "AnalysisResult")

    got = client.get("AnalysisResult", "test-analysis-1", "default")
    assert (got.get("status") or {}).get("options", []) == []


def test_create_idempotent_execution_result():
    client = _client("ExecutionResult")
    cr = {
        "kind": "ExecutionResult",
        "metadata": {"name": "test-execution-1", "namespace": "default"},
        "spec": {"proposalName": "test-proposal", "retryIndex": 0},
        "status": {
            "conditions": [
                {"type": "Completed", "status": "True", "reason": "Succeeded", "lastTransitionTime": NOW}
            ],
            "actionsTaken": [
                {"type": "patch", "description": "Increased memory limit", "outcome": "Succeeded"}
            ],
        },
    }
    create_idempotent(client, cr, "ExecutionResult")

    got = client.get("ExecutionResult", "test-execution-1", "default")
    assert len(got["status"]["actionsTaken"]) == 1
    assert got["status"]["actionsTaken"][0]["type"] == "patch"


def test_result_cr_name_formats_and_truncates():
    assert result_cr_name("p1", "analysis", 3) == "p1-analysis-3"
    assert len(result_cr_name("a" * 100, "analysis", 1)) <= 63


def test_result_labels_and_owner_ref():
    assert result_labels("p1", "execution") == {
        "agentic.openshift.io/proposal": "p1",
        "agentic.openshift.io/step": "execution",
    }
    ref = proposal_owner_ref(_proposal())
    assert ref["kind"] == "Proposal"
    assert ref["name"] == "p1"
    assert ref["uid"] == "uid-1"
    assert ref["controller"] is True
    assert ref["blockOwnerDeletion"] is True


def test_execution_retry_index():
    assert execution_retry_index(_proposal()) == 0
    assert execution_retry_index(_proposal(execution={"retryCount": 2})) == 2


def test_result_conditions_with_start_time():
    start = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    conditions = result_conditions(start, NOW, "Succeeded")
    assert [c["type"] for c in conditions] == ["Started", "Completed"]
    assert conditions[0]["lastTransitionTime"] == "2024-01-01T10:00:00Z"
    assert conditions[1]["reason"] == "Succeeded"


def test_result_conditions_failed_without_start():
    conditions = result_conditions(None, NOW, "Failed")
    assert len(conditions) == 1
    assert conditions[0]["reason"] == "Failed"
    assert conditions[0]["lastTransitionTime"] == NOW


def test_create_analysis_result_counts_previous_attempts():
    client = _client("AnalysisResult")
    proposal = _proposal(analysis={"results": [{"name": "p1-analysis-1"}]})
    result = AnalysisOutput(success=True, options=[{"title": "Fix"}])
    sandbox = {"claimName": "ls-analysis-p1", "namespace": "ns"}

    name = create_analysis_result(client, proposal, result, sandbox, None, NOW, "")

    assert name == "p1-analysis-2"
    got = client.get("AnalysisResult", name, "default")
    assert got["metadata"]["labels"]["agentic.openshift.io/step"] == "analysis"
    assert got["metadata"]["ownerReferences"][0]["uid"] == "uid-1"
    assert got["status"]["options"] == [{"title": "Fix"}]
    assert got["status"]["sandbox"] == sandbox
    assert got["status"]["conditions"][-1]["reason"] == "Succeeded"


def test_create_analysis_result_without_output_is_failed():
    client = _client("AnalysisResult")
    name = create_analysis_result(client, _proposal(), None, {}, None, NOW, "agent crashed")
    got = client.get("AnalysisResult", name, "default")
    assert got["status"]["conditions"][-1]["reason"] == "Failed"
    assert got["status"]["failureReason"] == "agent crashed"
    assert "options" not in got["status"]


def test_create_execution_result_sets_retry_index():
    client = _client("ExecutionResult")
    proposal = _proposal(execution={"retryCount": 1, "results": [{"name": "x"}]})
    output = ExecutionOutput(
        success=False,
        actions_taken=[{"type": "patch", "description": "d", "outcome": "Failed"}],
        verification={"conditionOutcome": "Unchanged"},
    )
    name = create_execution_result(client, proposal, output, {}, None, NOW, "")
    assert name == "p1-execution-2"
    got = client.get("ExecutionResult", name, "default")
    assert got["spec"]["retryIndex"] == 1
    assert got["status"]["verification"] == {"conditionOutcome": "Unchanged"}
    assert got["status"]["conditions"][-1]["reason"] == "Failed"


def test_create_verification_result():
    client = _client("VerificationResult")
    output = VerificationOutput(
        success=True, checks=[{"name": "pod-running", "result": "Passed"}], summary="ok"
    )
    name = create_verification_result(client, _proposal(), output, {}, NOW, NOW, "")
    got = client.get("VerificationResult", name, "default")
    assert name == "p1-verification-1"
    assert got["status"]["summary"] == "ok"
    assert got["status"]["checks"][0]["name"] == "pod-running"
    assert [c["type"] for c in got["status"]["conditions"]] == ["Started", "Completed"]


def test_create_escalation_result():
    client = _client("EscalationResult")
    output = EscalationOutput(success=True, summary="s", content="c")
    name = create_escalation_result(client, _proposal(), output, {}, None, NOW, "")
    got = client.get("EscalationResult", name, "default")
    assert name == "p1-escalation-1"
    assert (got["status"]["summary"], got["status"]["content"]) == ("s", "c")


def test_create_result_twice_is_idempotent():
    client = _client("EscalationResult")
    output = EscalationOutput(success=True, summary="first", content="c")
    create_escalation_result(client, _proposal(), output, {}, None, NOW, "")
    second = EscalationOutput(success=False, summary="second", content="c")
    name = create_escalation_result(client, _proposal(), second, {}, None, NOW, "")
    got = client.get("EscalationResult", name, "default")
    assert got["status"]["summary"] == "first"


@pytest.mark.parametrize("success,reason", [(True, "Succeeded"), (False, "Failed")])
def test_outcome_follows_success(success, reason):
    client = _client("AnalysisResult")
    name = create_analysis_result(client, _proposal(), AnalysisOutput(success=success), {}, None, NOW, "")
    got = client.get("AnalysisResult", name, "default")
    assert got["status"]["conditions"][-1]["reason"] == reason