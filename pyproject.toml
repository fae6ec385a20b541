[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tcpcount"
version = "0.1.0"
description = "Monitor and count TCP connections per process and remote host in a terminal dashboard"
requires-python = ">=3.10"
keywords = ["tcp", "connections", "netstat", "monitoring", "terminal", "curses"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console :: Curses",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
tcpcount = "tcpcount.app:main"

[tool.hatch.build.targets.wheel]
packages = ["tcpcount"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
