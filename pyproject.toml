[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "funchost"
version = "0.1.0"
description = "A small HTTP server that registers, builds and runs uploaded functions"
requires-python = ">=3.10"
dependencies = [
    "flask",
]
keywords = ["serverless", "functions", "faas", "http", "flask"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
funchost = "funchost.app:main"

[tool.hatch.build.targets.wheel]
packages = ["funchost"]

[tool.pytest.ini_options]
addopts = "-ra"
