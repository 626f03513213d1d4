[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bandwatch"
version = "0.1.0"
description = "Terminal bandwidth utilization monitor, broken down by process, connection and remote address"
requires-python = ">=3.10"
keywords = [
    "bandwidth",
    "network",
    "monitoring",
    "traffic",
    "sniffer",
    "terminal",
    "tui",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "dnspython",
    "psutil",
    "wcwidth",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
bandwatch = "bandwatch.app:main"

[tool.hatch.build.targets.wheel]
packages = ["bandwatch"]

[tool.hatch.build.targets.sdist]
include = [
    "bandwatch",
    "tests",
    "pyproject.toml",
    "README.md",
]

[tool.pytest.ini_options]
addopts = "-ra"
