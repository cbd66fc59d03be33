[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nostrelay"
version = "0.1.0"
description = "Nostr relay building blocks: subscription filters, protocol messages, metrics and an HTTP front end"
requires-python = ">=3.10"
dependencies = []
keywords = ["nostr", "relay", "subscription", "nip-01", "nip-19", "nip-42", "prometheus"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
nostrelay = "nostrelay.web:main"

[tool.hatch.build.targets.wheel]
packages = ["nostrelay"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
