[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "csihooks"
version = "0.1.0"
description = "Hooks that tailor CSI driver Deployments, DaemonSets, StorageClasses and snapshot classes for AWS and Azure clusters"
requires-python = ">=3.10"
dependencies = []
keywords = ["csi", "kubernetes", "openshift", "storage", "aws", "azure", "ebs", "efs"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["csihooks"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
