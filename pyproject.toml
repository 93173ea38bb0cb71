[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "uartlink"
version = "0.1.0"
description = "Relay current/power UART sensor readings to a serial touch screen and decode its key events"
requires-python = ">=3.10"
dependencies = [
    "pyserial",
]
keywords = ["serial", "uart", "hmi", "serial screen", "power meter"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Terminals :: Serial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
uartlink = "uartlink.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["uartlink"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
