[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "neuralzkp"
version = "0.1.0"
description = "A small convolutional neural network inference engine on NumPy with per-layer cost accounting and a JSON model format."
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "neural network",
    "convolution",
    "inference",
    "zero knowledge",
    "machine learning",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["neuralzkp"]

[tool.hatch.build.targets.sdist]
include = [
    "neuralzkp",
    "tests",
    "README.md",
    "pyproject.toml",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
