[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lsagentic"
version = "0.1.0"
description = "Proposal workflow helpers for agent sandboxes: an in-memory object store, sandbox claims, sandbox template patches, step resolution, result records and agent output schemas."
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "operator", "sandbox", "agent", "remediation", "json-schema"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lsagentic"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
