[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "barebone"
version = "0.1.0"
description = "Local artifact sync, skill and preference pools, and conversation rendering for an AI agent harness"
requires-python = ">=3.10"
keywords = [
    "agent",
    "llm",
    "skills",
    "preferences",
    "knowledge-base",
    "markdown",
    "sync",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
    "Typing :: Typed",
]
dependencies = [
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[tool.hatch.build.targets.wheel]
packages = ["barebone"]

[tool.hatch.build.targets.sdist]
include = ["barebone", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
