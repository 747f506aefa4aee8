[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "statefw"
version = "0.1.0"
description = "A stateful packet-filter model with a rule table, connection tracking, a packet log and an interactive control shell"
requires-python = ">=3.10"
dependencies = []
keywords = ["firewall", "packet filter", "stateful inspection", "connection tracking", "rules"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Firewalls",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
statefw = "statefw.client:main"

[tool.hatch.build.targets.wheel]
packages = ["statefw"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
