[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "anser"
version = "0.1.0"
description = "Tools for defining and running MongoDB data migrations as dependency-aware jobs"
requires-python = ">=3.10"
keywords = ["mongodb", "migrations", "database", "jobs", "queue", "dependencies"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database",
]
dependencies = [
    "pymongo",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["anser"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
