[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pgjobstore"
version = "0.2.0"
description = "Error types, diagnostic hints and asyncio task-stream plumbing for a PostgreSQL-backed job queue."
requires-python = ">=3.10"
keywords = ["jobs", "queue", "postgres", "asyncio", "worker", "polling"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest", "pytest-asyncio"]

[tool.hatch.build.targets.wheel]
packages = ["pgjobstore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
