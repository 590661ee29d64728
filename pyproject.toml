[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fireflyrt"
version = "0.9.1"
description = "Runtime core for a handheld game console: multiplayer netcode, system menu, image drawing and stats"
requires-python = ">=3.10"
dependencies = []
keywords = ["game", "console", "runtime", "netcode", "multiplayer", "handheld"]
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
    "Topic :: Games/Entertainment",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fireflyrt"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
