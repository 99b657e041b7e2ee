[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "controlproto"
version = "0.1.0"
description = "Acknowledged control-plane messaging: services, opcode routing, send caching, notification stores and connection pools"
requires-python = ">=3.10"
dependencies = []
keywords = ["control-plane", "messaging", "ack", "connection-pool", "notification-store"]
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
    "Topic :: System :: Distributed Computing",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["controlproto"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
