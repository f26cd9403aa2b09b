[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kadnet"
version = "0.1.0"
description = "A small Kademlia distributed hash table node over UDP with an interactive console"
requires-python = ">=3.10"
dependencies = []
keywords = ["kademlia", "dht", "p2p", "distributed hash table", "udp"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kadnet = "kadnet.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["kadnet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
