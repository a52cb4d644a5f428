[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chainlab"
version = "0.1.0"
description = "An in-memory blockchain with a virtual filesystem and sample services for testing smart-contract logic"
requires-python = ">=3.10"
dependencies = []
keywords = ["blockchain", "testing", "simulation", "smart-contracts", "filesystem"]
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
    "Topic :: Software Development :: Testing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["chainlab"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
