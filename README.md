# lsagentic

Building blocks for running remediation proposals through short-lived agent
sandboxes. A proposal moves through analysis, execution, verification and,
when things go wrong, escalation. Each step runs an agent inside a sandbox
that is claimed from a sandbox template.

The package has no runtime dependencies. Cluster objects are plain
dictionaries, and `lsagentic.kube.MemoryClient` is an in-memory object store
that the rest of the package talks to. Any object with the same `get`,
`create`, `delete`, `list` and `patch_status` methods can take its place.

## Modules

### `lsagentic.kube`

- `MemoryClient(objects=(), status_subresources=())` keeps objects keyed by
  kind, namespace and name. It has `get(kind, name, namespace="")`,
  `create(obj)`, `delete(kind, name, namespace="")`,
  `list(kind, namespace=None, labels=None)` and `patch_status(obj)`. Every
  write stamps a new `resourceVersion`. A missing object raises
  `NotFoundError`, and a name that is already taken raises
  `AlreadyExistsError`. Both are subclasses of `ApiError`. For kinds named in
  `status_subresources`, `create` drops the status and only `patch_status`
  writes it.
- `truncate_k8s_name(name)` cuts a name to 63 characters and strips trailing
  dashes.
- `nested_get(obj, *keys)` returns the value at a key path, or `None` when a
  key is missing. `set_nested(obj, value, *keys)` sets a value there and
  creates the intermediate mappings it needs.

### `lsagentic.schemas`

This module holds the JSON Schemas sent to agents for structured output:
`ANALYSIS_OUTPUT_SCHEMA`, `MINIMAL_ANALYSIS_OUTPUT_SCHEMA`,
`EXECUTION_OUTPUT_SCHEMA`, `VERIFICATION_OUTPUT_SCHEMA` and
`ESCALATION_OUTPUT_SCHEMA`, all collected in `DEFAULT_OUTPUT_SCHEMAS`.

`output_schema_for_step(step_name, proposal)` returns a copy of the schema
for a step, or `None` for an unknown step. For `"analysis"` it builds the
schema from the proposal's `spec.analysisOutput`:

- The mode is `Default` or `Minimal` (see `AnalysisOutputMode`).
- When the proposal has an execution step, `rbac` is required, and in
  Minimal mode `proposal` is added and required as well.
- When the proposal has a verification step, `verification` is required.
- An optional custom `schema` is added to each option as a required
  `components` property.

`step_is_zero(step)` tells whether a step is absent or holds only empty
values.

### `lsagentic.sandbox`

`SandboxManager(client, namespace)` manages SandboxClaims:

- `build_claim(...)` returns the claim object.
- `claim(proposal_name, step, template_name)` creates the claim
  `ls-<step>-<proposal>`. If that claim already exists, it is reused.
- `wait_ready(claim_name, timeout, poll_interval=2.0)` polls until the
  claimed Sandbox reports `Ready` and has a `serviceFQDN`, then returns that
  FQDN. It raises `TimeoutError` once the timeout has passed.
- `release(claim_name)` deletes the claim. A claim that is already gone is
  not an error.

`SandboxProvider` is the protocol that the manager implements. The module
also defines the `agentic.openshift.io/...` label names (`LABEL_PROPOSAL`,
`LABEL_STEP`, `LABEL_AGENT` and others).

### `lsagentic.template_patches`

This module edits a SandboxTemplate dictionary in place. The functions are
`set_env_var`, `add_env_var_from_secret`, `add_env_from_secret`,
`add_secret_volume`, `add_volume_mount`, `patch_skills_image`,
`patch_skills_paths`, `patch_agent_mode`, `patch_mcp_servers` and
`patch_required_secrets`.

- Environment variables are matched by name, volumes by name and mounts by
  mount path. A match is replaced; otherwise the entry is appended.
- `patch_mcp_servers` writes the server list as compact JSON to
  `LIGHTSPEED_MCP_SERVERS`. It also mounts the secret behind every
  secret-sourced header.
- A template without containers, or without volumes where volumes are
  needed, raises `TemplateError`.

### `lsagentic.resolve`

`resolve_proposal(client, proposal)` returns a `ResolvedWorkflow` with one
`ResolvedStep` (agent, LLM provider, tools) for analysis, and one each for
execution and verification when the proposal has those steps. Otherwise they
are `None`.

- A step without an agent uses `"default"`; see `step_agent_name(step)`.
- A step without tools of its own uses the proposal's tools.
- Each Agent and LLMProvider is fetched once.
- A missing object raises `ApiError`.

### `lsagentic.results`

`create_analysis_result`, `create_execution_result`,
`create_verification_result` and `create_escalation_result` record one
attempt of a step. Each takes an `AnalysisOutput`, `ExecutionOutput`,
`VerificationOutput` or `EscalationOutput`, or `None` for a failed call, and
returns the name `<proposal>-<step>-<n>`.

The record is owned by the proposal, labelled with the proposal and step,
and carries Started and Completed conditions. `create_idempotent(client,
obj, kind)` creates an object and then patches its status. An object that
already exists is left untouched. The smaller helpers `result_cr_name`,
`proposal_owner_ref`, `result_labels`, `execution_retry_index` and
`result_conditions` are public too.

## Example

```python
from lsagentic.kube import MemoryClient
from lsagentic.sandbox import SandboxManager

client = MemoryClient()
manager = SandboxManager(client, "agents")
claim_name = manager.claim("fix-crash", "analysis", "lightspeed-agent")
print(claim_name)  # ls-analysis-fix-crash
manager.release(claim_name)
```

## What the package does not do

- It does not talk to a real cluster. `MemoryClient` is the only client it
  ships.
- It does not derive a per-agent, per-step sandbox template from a base
  template, such as a hashed template name, LLM credential variables or
  clean-up of older templates. `lsagentic.template_patches` provides the
  individual edits only.
- It does not call an agent. Nothing here sends a query to a sandbox,
  records a claim on a proposal, or releases all of a proposal's sandboxes
  at once.
- It has no controller loop and no command-line entry point.

## Tests

The tests use pytest, available through the `test` extra.