[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "aquascope"
version = "0.1.0"
description = "Embed ownership and borrowing visualizations of Rust code in mdBook chapters, and serve them over HTTP"
requires-python = ">=3.11"
dependencies = [
    "aiohttp",
]
keywords = [
    "mdbook",
    "markdown",
    "preprocessor",
    "rust",
    "ownership",
    "borrow-checker",
    "visualization",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Markup :: Markdown",
    "Topic :: Education",
    "Topic :: Software Development :: Documentation",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
mdbook-aquascope = "aquascope.preprocessor:main"
aquascope-serve = "aquascope.server:main"

[tool.hatch.build.targets.wheel]
packages = ["aquascope"]

[tool.hatch.build.targets.sdist]
include = [
    "aquascope",
    "tests",
    "README.md",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
