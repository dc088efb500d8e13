[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "palletry"
version = "0.1.0"
description = "In-memory runtime modules for accounts, balances, events and on-chain style state machines"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "runtime",
    "pallet",
    "blockchain",
    "simulation",
    "fixed-point",
    "ringbuffer",
    "crowdfund",
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
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["palletry"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
