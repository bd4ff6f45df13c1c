[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tspool"
version = "0.1.0"
description = "A thread-based task pool with bounded queueing, per-task timeouts and automatic worker scaling."
requires-python = ">=3.10"
dependencies = []
keywords = ["thread pool", "worker pool", "task queue", "autoscaling", "concurrency"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Python Modules",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tspool-demo = "tspool.demo:main"

[tool.hatch.build.targets.wheel]
packages = ["tspool"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
