import pytest

from lsagentic.schemas import output_schema_for_step, step_is_zero


def option_items(schema):
    return schema["properties"]["options"]["items"]


def option_required(schema):
    return set(option_items(schema)["required"])


def option_properties(schema):
    return option_items(schema)["properties"]


def proposal_with(**spec):
    return {"metadata": {"name": "p1"}, "spec": spec}


@pytest.mark.parametrize(
    "phase,required_key",
    [
        ("analysis", "options"),
        ("execution", "actionsTaken"),
        ("verification", "checks"),
        ("escalation", "content"),
    ],
)
def test_all_phases_present(phase, required_key):
    schema = output_schema_for_step(phase, proposal_with())
    assert schema is not None
    assert required_key in schema["properties"]


def test_unknown_phase_returns_none():
    assert output_schema_for_step("unknown", proposal_with()) is None


def test_analysis_schema_is_object():
    assert output_schema_for_step("analysis", proposal_with())["type"] == "object"


def test_execution_schema_requires_actions_taken():
    schema = output_schema_for_step("execution", proposal_with())
    assert "actionsTaken" in schema["required"]


def test_escalation_schema_requires_fields():
    schema = output_schema_for_step("escalation", proposal_with())
    for key in ("success", "summary", "content"):
        assert key in schema["required"]


def test_verification_schema_requires_checks():
    schema = output_schema_for_step("verification", proposal_with())
    assert "checks" in schema["required"]


def test_analysis_options_structure():
    schema = output_schema_for_step("analysis", proposal_with())
    options = schema["properties"]["options"]
    assert options["type"] == "array"
    props = option_properties(schema)
    for key in ("title", "diagnosis", "proposal", "rbac", "verification"):
        assert key in props
    required = option_required(schema)
    assert "rbac" not in required


def test_verification_checks_use_result_not_passed():
    schema = output_schema_for_step("verification", proposal_with())
    items = schema["properties"]["checks"]["items"]
    assert "result" in items["properties"]
    assert "passed" not in items["properties"]
    assert items["properties"]["result"]["type"] == "string"
    assert "result" in items["required"]


def test_execution_actions_use_outcome_not_success():
    schema = output_schema_for_step("execution", proposal_with())
    items = schema["properties"]["actionsTaken"]["items"]
    assert "outcome" in items["properties"]
    assert "success" not in items["properties"]
    assert "outcome" in items["required"]


def test_full_proposal_requires_rbac_and_verification():
    proposal = proposal_with(
        execution={"agent": "default"}, verification={"agent": "default"}
    )
    required = option_required(output_schema_for_step("analysis", proposal))
    assert "rbac" in required
    assert "verification" in required


def test_execution_only_requires_rbac_not_verification():
    proposal = proposal_with(execution={"agent": "default"})
    required = option_required(output_schema_for_step("analysis", proposal))
    assert "rbac" in required
    assert "verification" not in required


def test_advisory_omits_rbac_and_verification():
    required = option_required(output_schema_for_step("analysis", proposal_with()))
    assert "rbac" not in required
    assert "verification" not in required
    assert {"title", "diagnosis", "proposal"} <= required


def test_non_analysis_returns_default():
    proposal = proposal_with(execution={"agent": "default"})
    for step in ("execution", "verification", "escalation"):
        assert output_schema_for_step(step, proposal) == output_schema_for_step(
            step, proposal_with()
        )


def test_custom_schema_injects_components():
    proposal = proposal_with(
        analysisOutput={
            "schema": {"type": "object", "properties": {"foo": {"type": "string"}}}
        }
    )
    schema = output_schema_for_step("analysis", proposal)
    components = option_properties(schema)["components"]
    assert components["type"] == "object"
    assert "foo" in components["properties"]
    assert "components" in option_required(schema)


def test_without_custom_schema_no_components():
    schema = output_schema_for_step("analysis", proposal_with())
    assert "components" not in option_properties(schema)
    assert "components" not in option_required(schema)


def test_minimal_mode_schema_has_only_title():
    schema = output_schema_for_step("analysis", proposal_with(analysisOutput={"mode": "Minimal"}))
    assert schema["type"] == "object"
    assert list(option_properties(schema)) == ["title"]


def test_minimal_mode_strips_builtin_properties():
    schema = output_schema_for_step("analysis", proposal_with(analysisOutput={"mode": "Minimal"}))
    props = option_properties(schema)
    assert "title" in props
    for key in ("diagnosis", "proposal", "rbac", "verification", "summary"):
        assert key not in props
    required = option_required(schema)
    assert "title" in required
    assert "diagnosis" not in required
    assert "proposal" not in required


def test_minimal_mode_with_custom_schema():
    proposal = proposal_with(
        analysisOutput={
            "mode": "Minimal",
            "schema": {"type": "object", "properties": {"severity": {"type": "string"}}},
        }
    )
    schema = output_schema_for_step("analysis", proposal)
    props = option_properties(schema)
    assert "components" in props
    assert "diagnosis" not in props
    required = option_required(schema)
    assert "components" in required
    assert "title" in required


def test_minimal_mode_with_execution_injects_rbac_and_proposal():
    proposal = proposal_with(
        analysisOutput={"mode": "Minimal"}, execution={"agent": "default"}
    )
    schema = output_schema_for_step("analysis", proposal)
    props = option_properties(schema)
    assert "rbac" in props
    assert "proposal" in props
    assert "diagnosis" not in props
    required = option_required(schema)
    assert "rbac" in required
    assert "proposal" in required


def test_minimal_mode_injected_property_matches_default_definition():
    minimal = output_schema_for_step(
        "analysis",
        proposal_with(analysisOutput={"mode": "Minimal"}, execution={"agent": "default"}),
    )
    default = output_schema_for_step("analysis", proposal_with())
    assert option_properties(minimal)["rbac"] == option_properties(default)["rbac"]


def test_minimal_mode_with_verification_injects_verification():
    proposal = proposal_with(
        analysisOutput={"mode": "Minimal"}, verification={"agent": "default"}
    )
    schema = output_schema_for_step("analysis", proposal)
    assert "verification" in option_properties(schema)
    assert "verification" in option_required(schema)


def test_default_mode_unchanged():
    schema = output_schema_for_step("analysis", proposal_with(analysisOutput={"mode": "Default"}))
    props = option_properties(schema)
    for key in ("title", "diagnosis", "proposal", "rbac", "verification"):
        assert key in props
    assert {"title", "diagnosis", "proposal"} <= option_required(schema)


def test_returned_schema_is_independent_copy():
    first = output_schema_for_step("analysis", proposal_with())
    option_properties(first).clear()
    second = output_schema_for_step("analysis", proposal_with())
    assert "title" in option_properties(second)


def test_step_is_zero():
    assert step_is_zero(None)
    assert step_is_zero({})
    assert step_is_zero({"agent": "", "tools": {"skills": []}})
    assert not step_is_zero({"agent": "default"})
    assert not step_is_zero({"tools": {"skills": [{"image": "s:v1"}]}})