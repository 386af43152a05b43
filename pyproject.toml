[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "meshsync"
version = "0.1.0"
description = "Service-mesh configuration helpers: address allocation, config conversion, a custom-resource REST client and a remote-cluster secret controller"
requires-python = ">=3.10"
keywords = ["service-mesh", "kubernetes", "crd", "multicluster", "configuration"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "pyyaml",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["meshsync"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
