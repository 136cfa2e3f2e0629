"""Resolving a proposal's steps to agents, LLM providers and tools."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .kube import ApiError
from .schemas import step_is_zero

DEFAULT_AGENT_NAME = "default"
AGENT_KIND = "Agent"
LLM_PROVIDER_KIND = "LLMProvider"


@dataclass
class ResolvedStep:
    """The agent, LLM provider and tools a step runs with."""

    agent: dict[str, Any]
    llm: dict[str, Any]
    tools: Mapping[str, Any]


@dataclass
class ResolvedWorkflow:
    """Resolved steps of a proposal; None means the step is skipped."""

    analysis: ResolvedStep
    execution: ResolvedStep | None = None
    verification: ResolvedStep | None = None


def step_agent_name(step: Mapping[str, Any] | None) -> str:
    """Return the agent a step names, or the default agent."""
    return (step or {}).get("agent") or DEFAULT_AGENT_NAME


class _Resolver:
    def __init__(self, client: Any, proposal: Mapping[str, Any]) -> None:
        self._client = client
        self._spec = proposal.get("spec") or {}
        self._agents: dict[str, dict[str, Any]] = {}
        self._llms: dict[str, dict[str, Any]] = {}

    def _agent(self, name: str) -> dict[str, Any]:
        if name not in self._agents:
            try:
                self._agents[name] = self._client.get(AGENT_KIND, name)
            except ApiError as err:
                raise ApiError(f"get Agent {name!r}: {err}") from err
        return self._agents[name]

    def _llm(self, name: str, agent_name: str) -> dict[str, Any]:
        if name not in self._llms:
            try:
                self._llms[name] = self._client.get(LLM_PROVIDER_KIND, name)
            except ApiError as err:
                raise ApiError(
                    f"get LLMProvider {name!r} (referenced by Agent {agent_name!r}): {err}"
                ) from err
        return self._llms[name]

    def _tools(self, step: Mapping[str, Any]) -> Mapping[str, Any]:
        tools = step.get("tools")
        if not step_is_zero(tools):
            return tools
        return self._spec.get("tools") or {}

    def step(self, step_key: str) -> ResolvedStep:
        step = self._spec.get(step_key) or {}
        agent_name = step_agent_name(step)
        try:
            agent = self._agent(agent_name)
            llm_name = ((agent.get("spec") or {}).get("llmProvider") or {}).get("name", "")
            llm = self._llm(llm_name, agent_name)
        except ApiError as err:
            raise ApiError(f"resolve {step_key} step: {err}") from err
        return ResolvedStep(agent=agent, llm=llm, tools=self._tools(step))

    def has_step(self, step_key: str) -> bool:
        return not step_is_zero(self._spec.get(step_key))


def resolve_proposal(client: Any, proposal: Mapping[str, Any]) -> ResolvedWorkflow:
    """Look up the agent and LLM provider of every step the proposal has.

    Each Agent and LLMProvider is fetched once; steps sharing a name share
    the same object. Raises ApiError when a referenced object is missing.
    """
    resolver = _Resolver(client, proposal)
    workflow = ResolvedWorkflow(analysis=resolver.step("analysis"))
    if resolver.has_step("execution"):
        workflow.execution = resolver.step("execution")
    if resolver.has_step("verification"):
        workflow.verification = resolver.step("verification")
    return workflow