[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "measurekit"
version = "0.1.0"
description = "Application measures with pluggable handlers, InfluxDB line-protocol output and OpenTelemetry export"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "metrics",
    "measures",
    "monitoring",
    "instrumentation",
    "influxdb",
    "opentelemetry",
    "otlp",
]
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
    "Topic :: System :: Monitoring",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["measurekit"]

[tool.hatch.build.targets.sdist]
include = ["measurekit", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
