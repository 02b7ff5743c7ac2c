[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nixjbplugins"
version = "0.3.0"
description = "Generate Nix-ready hash databases of JetBrains IDE marketplace plugins"
requires-python = ">=3.11"
keywords = ["nix", "jetbrains", "intellij", "plugins", "generator"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "httpx",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "respx",
]

[project.scripts]
nixjbplugins = "nixjbplugins.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["nixjbplugins"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
