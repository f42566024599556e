[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "feesim"
version = "0.1.0"
description = "Bitcoin transaction fee estimation from mempool collection and block statistics"
requires-python = ">=3.10"
keywords = ["bitcoin", "fees", "mempool", "estimation", "json-rpc"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
]
dependencies = [
    "pyyaml>=6.0",
    "filelock>=3.12",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
feesim = "feesim.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["feesim"]

[tool.pytest.ini_options]
addopts = "-ra"
