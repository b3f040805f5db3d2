[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tradedesk"
version = "0.1.0"
description = "Trading desk service core: login-time state machine, account and group assignment, order allocation and SQLite-backed bookkeeping"
requires-python = ">=3.10"
dependencies = []
keywords = ["trading", "futures", "order allocation", "accounts", "sqlite"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tradedesk = "tradedesk.main:main"

[tool.hatch.build.targets.wheel]
packages = ["tradedesk"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
