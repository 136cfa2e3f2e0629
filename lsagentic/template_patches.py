"""Edits applied to unstructured SandboxTemplate objects."""

from __future__ import annotations

import json
import posixpath
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from .kube import nested_get, set_nested

AGENT_MODE_ENV_VAR = "LIGHTSPEED_MODE"
MCP_HEADERS_MOUNT_ROOT = "/var/secrets/mcp"
MCP_SERVERS_ENV_VAR = "LIGHTSPEED_MCP_SERVERS"
MCP_HEADER_SOURCE_SECRET = "Secret"
DEFAULT_SKILLS_MOUNT_PATH = "/app/skills"

_POD_SPEC = ("spec", "podTemplate", "spec")
_CONTAINERS_PATH = (*_POD_SPEC, "containers")
_VOLUMES_PATH = (*_POD_SPEC, "volumes")


class TemplateError(Exception):
    """Raised when a template cannot be patched."""


class SecretMountType(str, Enum):
    FILE_PATH = "FilePath"
    ENV_VAR = "EnvVar"


def _set(obj: dict[str, Any], value: Any, *path: str) -> None:
    try:
        set_nested(obj, value, *path)
    except TypeError as err:
        raise TemplateError(str(err)) from err


def _first_container(template: dict[str, Any]) -> dict[str, Any]:
    try:
        containers = nested_get(template, *_CONTAINERS_PATH)
    except TypeError as err:
        raise TemplateError(f"read containers: {err}") from err
    if containers is None:
        raise TemplateError("template has no containers")
    if not isinstance(containers, list):
        raise TemplateError("read containers: containers is not a list")
    if not containers:
        raise TemplateError("template has no containers")
    container = containers[0]
    if not isinstance(container, dict):
        raise TemplateError("container[0] is not a map")
    return container


def _list_field(obj: Mapping[str, Any], key: str) -> list[Any]:
    value = obj.get(key)
    return list(value) if isinstance(value, list) else []


def _replace_or_append(
    items: list[Any], entry: dict[str, Any], key: str, value: Any
) -> list[Any]:
    for position, item in enumerate(items):
        if isinstance(item, dict) and item.get(key) == value:
            items[position] = entry
            return items
    items.append(entry)
    return items


def _upsert_env(template: dict[str, Any], name: str, entry: dict[str, Any]) -> None:
    try:
        container = _first_container(template)
    except TemplateError as err:
        raise TemplateError(f"upsert env {name}: {err}") from err
    container["env"] = _replace_or_append(_list_field(container, "env"), entry, "name", name)


def set_env_var(template: dict[str, Any], name: str, value: str) -> None:
    """Set a plain environment variable on the first container."""
    _upsert_env(template, name, {"name": name, "value": value})


def add_env_var_from_secret(
    template: dict[str, Any], env_name: str, secret_name: str, key: str
) -> None:
    """Set an environment variable read from an optional secret key."""
    key_ref = dict(name=secret_name, key=key, optional=True)
    _upsert_env(
        template,
        env_name,
        {"name": env_name, "valueFrom": {"secretKeyRef": key_ref}},
    )


def add_env_from_secret(template: dict[str, Any], secret_name: str) -> None:
    """Load all keys of a secret as environment variables, once."""
    try:
        container = _first_container(template)
    except TemplateError as err:
        raise TemplateError(f"add envFrom secret: {err}") from err
    env_from = _list_field(container, "envFrom")
    for entry in env_from:
        if not isinstance(entry, dict):
            continue
        ref = entry.get("secretRef")
        if isinstance(ref, dict) and ref.get("name") == secret_name:
            return
    env_from.append(dict(secretRef=dict(name=secret_name)))
    container["envFrom"] = env_from


def add_secret_volume(template: dict[str, Any], volume_name: str, secret_name: str) -> None:
    """Add or replace a pod volume backed by a secret."""
    try:
        volumes = nested_get(template, *_VOLUMES_PATH)
    except TypeError:
        volumes = None
    volumes = list(volumes) if isinstance(volumes, list) else []
    secret_source = dict(secretName=secret_name)
    volume = {"name": volume_name, "secret": secret_source}
    _set(template, _replace_or_append(volumes, volume, "name", volume_name), *_VOLUMES_PATH)


def add_volume_mount(
    template: dict[str, Any], name: str, mount_path: str, read_only: bool
) -> None:
    """Add or replace (by mount path) a volume mount on the first container."""
    try:
        container = _first_container(template)
    except TemplateError as err:
        raise TemplateError(f"add volume mount: {err}") from err
    mount = {"name": name, "mountPath": mount_path, "readOnly": read_only}
    container["volumeMounts"] = _replace_or_append(
        _list_field(container, "volumeMounts"), mount, "mountPath", mount_path
    )


def patch_skills_image(template: dict[str, Any], image: str) -> None:
    """Point the "skills" image volume at a new image, always pulled."""
    try:
        volumes = nested_get(template, *_VOLUMES_PATH)
    except TypeError as err:
        raise TemplateError(f"read volumes: {err}") from err
    if volumes is None:
        raise TemplateError("template has no volumes")
    if not isinstance(volumes, list):
        raise TemplateError("read volumes: volumes is not a list")
    for volume in volumes:
        if not isinstance(volume, dict) or volume.get("name") != "skills":
            continue
        try:
            set_nested(volume, image, "image", "reference")
            set_nested(volume, "Always", "image", "pullPolicy")
        except TypeError as err:
            raise TemplateError(f"set skills image: {err}") from err


def _path_base(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def _path_join(*elements: str) -> str:
    parts = [element for element in elements if element]
    if not parts:
        return ""
    cleaned = posixpath.normpath("/".join(parts))
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def patch_skills_paths(template: dict[str, Any], paths: Iterable[str] | None) -> None:
    """Replace the whole skills mount with one subPath mount per skill path."""
    paths = list(paths or [])
    if not paths:
        return
    try:
        container = _first_container(template)
    except TemplateError as err:
        raise TemplateError(f"patch skills paths: {err}") from err

    base_mount_path = DEFAULT_SKILLS_MOUNT_PATH
    kept: list[Any] = []
    for mount in _list_field(container, "volumeMounts"):
        if isinstance(mount, dict) and mount.get("name") == "skills":
            if isinstance(mount.get("mountPath"), str):
                base_mount_path = mount["mountPath"]
            continue
        kept.append(mount)

    kept.extend(
        {
            "name": "skills",
            "mountPath": _path_join(base_mount_path, _path_base(path)),
            "subPath": path[1:] if path.startswith("/") else path,
            "readOnly": True,
        }
        for path in paths
    )
    container["volumeMounts"] = kept


def patch_agent_mode(template: dict[str, Any], mode: str) -> None:
    """Tell the agent which step it runs."""
    set_env_var(template, AGENT_MODE_ENV_VAR, mode)


def _compact_json(value: Any) -> str:
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    for raw, escaped in (
        ("<", "\\u003c"),
        (">", "\\u003e"),
        ("&", "\\u0026"),
        ("\u2028", "\\u2028"),
        ("\u2029", "\\u2029"),
    ):
        text = text.replace(raw, escaped)
    return text


def patch_mcp_servers(
    template: dict[str, Any], servers: Iterable[Mapping[str, Any]]
) -> None:
    """Describe MCP servers in an environment variable and mount header secrets."""
    entries = []
    for server in servers:
        entry: dict[str, Any] = {"name": server.get("name", ""), "url": server.get("url", "")}
        timeout = server.get("timeoutSeconds") or 0
        if timeout:
            entry["timeout"] = timeout
        headers = []
        for header in server.get("headers") or []:
            value_from = header.get("valueFrom") or {}
            source = value_from.get("type", "")
            header_entry: dict[str, Any] = {"name": header.get("name", ""), "source": source}
            if source == MCP_HEADER_SOURCE_SECRET:
                secret_name = (value_from.get("secret") or {}).get("name", "")
                if secret_name:
                    header_entry["secretName"] = secret_name
                volume_name = f"mcp-header-{secret_name}"
                try:
                    add_secret_volume(template, volume_name, secret_name)
                    add_volume_mount(
                        template, volume_name, f"{MCP_HEADERS_MOUNT_ROOT}/{secret_name}", True
                    )
                except TemplateError as err:
                    raise TemplateError(f"mount MCP header secret: {err}") from err
            headers.append(header_entry)
        if headers:
            entry["headers"] = headers
        entries.append(entry)
    set_env_var(template, MCP_SERVERS_ENV_VAR, _compact_json(entries))


def patch_required_secrets(
    template: dict[str, Any], secrets: Iterable[Mapping[str, Any]]
) -> None:
    """Mount each required secret as a file or expose its token as an env var."""
    for requirement in secrets:
        name = requirement.get("name", "")
        mount_as = requirement.get("mountAs") or {}
        mount_type = mount_as.get("type")
        if mount_type == SecretMountType.FILE_PATH:
            volume_name = f"req-{name}"
            mount_path = (mount_as.get("filePath") or {}).get("path", "")
            try:
                add_secret_volume(template, volume_name, name)
                add_volume_mount(template, volume_name, mount_path, True)
            except TemplateError as err:
                raise TemplateError(f"mount secret {name!r}: {err}") from err
        elif mount_type == SecretMountType.ENV_VAR:
            env_name = (mount_as.get("envVar") or {}).get("name", "")
            try:
                add_env_var_from_secret(template, env_name, name, "token")
            except TemplateError as err:
                raise TemplateError(f"add env var from secret {name!r}: {err}") from err