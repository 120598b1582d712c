[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xdrtuner"
version = "0.1.0"
description = "Protocol parsing, state tracking, connections and an SRCP bridge for XDR-F1HD and TEF668X FM/AM tuners"
requires-python = ">=3.10"
dependencies = [
    "pyserial",
]
keywords = [
    "radio",
    "tuner",
    "fm",
    "am",
    "dx",
    "rds",
    "xdr",
    "tef668x",
    "srcp",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Ham Radio",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["xdrtuner"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
