"""Claiming, awaiting and releasing agent sandboxes."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .kube import (
    AlreadyExistsError,
    ApiError,
    NotFoundError,
    nested_get,
    truncate_k8s_name,
)

log = logging.getLogger(__name__)

SANDBOX_CLAIM_API_VERSION = "extensions.agents.x-k8s.io/v1alpha1"
SANDBOX_CLAIM_KIND = "SandboxClaim"
SANDBOX_API_VERSION = "agents.x-k8s.io/v1alpha1"
SANDBOX_KIND = "Sandbox"

DEFAULT_POLL_INTERVAL = 2.0

LABEL_MANAGED = "agentic.openshift.io/managed"
LABEL_BASE_TEMPLATE = "agentic.openshift.io/base-template"
LABEL_STEP = "agentic.openshift.io/step"
LABEL_AGENT = "agentic.openshift.io/agent"
LABEL_PROPOSAL = "agentic.openshift.io/proposal"
LABEL_COMPONENT = "agentic.openshift.io/component"


@runtime_checkable
class SandboxProvider(Protocol):
    """Lifecycle of the sandboxes that agent steps run in."""

    def claim(self, proposal_name: str, step: str, template_name: str) -> str:
        """Claim a sandbox for a step and return the claim name."""

    def wait_ready(self, claim_name: str, timeout: float) -> str:
        """Wait for the claimed sandbox and return its endpoint."""

    def release(self, claim_name: str) -> None:
        """Release a claimed sandbox."""


def _nested_string(obj: dict[str, Any], what: str, *path: str) -> str | None:
    try:
        value = nested_get(obj, *path)
    except TypeError as err:
        raise ApiError(f"extract {what}: {err}") from err
    if value is None:
        return None
    if not isinstance(value, str):
        raise ApiError(
            f"extract {what}: {'.'.join(path)} is of type {type(value).__name__}, expected a string"
        )
    return value


def _nested_list(obj: dict[str, Any], what: str, *path: str) -> list[Any] | None:
    try:
        value = nested_get(obj, *path)
    except TypeError as err:
        raise ApiError(f"extract {what}: {err}") from err
    if value is None:
        return None
    if not isinstance(value, list):
        raise ApiError(
            f"extract {what}: {'.'.join(path)} is of type {type(value).__name__}, expected a list"
        )
    return value


@dataclass
class SandboxManager:
    """Handles SandboxClaim lifecycle for proposal steps."""

    client: Any
    namespace: str

    def build_claim(
        self, claim_name: str, proposal_name: str, step: str, template_name: str
    ) -> dict[str, Any]:
        """Return the SandboxClaim object for a step."""
        return {
            "apiVersion": SANDBOX_CLAIM_API_VERSION,
            "kind": SANDBOX_CLAIM_KIND,
            "metadata": {
                "name": claim_name,
                "namespace": self.namespace,
                "labels": {
                    LABEL_PROPOSAL: proposal_name,
                    LABEL_STEP: step,
                },
            },
            "spec": {
                "sandboxTemplateRef": {"name": template_name},
                "lifecycle": {"shutdownPolicy": "Delete"},
            },
        }

    def claim(self, proposal_name: str, step: str, template_name: str) -> str:
        """Create a SandboxClaim for the step; an existing claim is reused."""
        claim_name = truncate_k8s_name(f"ls-{step}-{proposal_name}")
        claim = self.build_claim(claim_name, proposal_name, step, template_name)
        try:
            self.client.create(claim)
        except AlreadyExistsError:
            return claim_name
        except ApiError as err:
            raise ApiError(f"failed to create SandboxClaim for {step}: {err}") from err
        log.info(
            "Created SandboxClaim name=%s step=%s template=%s",
            claim_name,
            step,
            template_name,
        )
        return claim_name

    def wait_ready(
        self,
        claim_name: str,
        timeout: float,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> str:
        """Poll until the claimed sandbox is Ready and return its service FQDN.

        Raises TimeoutError once ``timeout`` seconds have passed.
        """
        deadline = time.monotonic() + timeout
        while True:
            time.sleep(poll_interval)
            if time.monotonic() > deadline:
                raise TimeoutError(
                    f"timeout waiting for sandbox {claim_name!r} after {timeout}s"
                )

            try:
                claim = self.client.get(SANDBOX_CLAIM_KIND, claim_name, self.namespace)
            except ApiError:
                log.debug("Waiting for SandboxClaim name=%s", claim_name)
                continue

            sandbox_name = _nested_string(
                claim,
                f"sandbox name from claim {claim_name!r}",
                "status",
                "sandbox",
                "name",
            )
            if not sandbox_name:
                continue

            try:
                sandbox = self.client.get(SANDBOX_KIND, sandbox_name, self.namespace)
            except ApiError as err:
                log.debug("Waiting for Sandbox name=%s error=%s", sandbox_name, err)
                continue

            conditions = _nested_list(
                sandbox,
                f"conditions from sandbox {sandbox_name!r}",
                "status",
                "conditions",
            )
            if conditions is None:
                continue

            fqdn = self._ready_fqdn(sandbox, sandbox_name, conditions)
            if fqdn:
                log.info("Sandbox ready sandbox=%s fqdn=%s", sandbox_name, fqdn)
                return fqdn

    @staticmethod
    def _ready_fqdn(
        sandbox: dict[str, Any], sandbox_name: str, conditions: list[Any]
    ) -> str | None:
        for condition in conditions:
            if not isinstance(condition, dict):
                continue
            if condition.get("type") == "Ready" and condition.get("status") == "True":
                fqdn = _nested_string(
                    sandbox,
                    f"serviceFQDN from sandbox {sandbox_name!r}",
                    "status",
                    "serviceFQDN",
                )
                if fqdn:
                    return fqdn
        return None

    def release(self, claim_name: str) -> None:
        """Delete a SandboxClaim; a claim that is already gone is fine."""
        try:
            self.client.delete(SANDBOX_CLAIM_KIND, claim_name, self.namespace)
        except NotFoundError:
            return
        except ApiError as err:
            raise ApiError(f"failed to delete SandboxClaim {claim_name!r}: {err}") from err
        log.info("Released SandboxClaim name=%s", claim_name)