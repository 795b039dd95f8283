[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "scenegraph"
version = "0.1.0"
description = "Building blocks for incremental 3D semantic scene graph prediction: segment nodes, feature buffers, graph-network inference and scan dataset loaders."
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["scene graph", "slam", "point cloud", "graph neural network", "3rscan", "scannet"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["scenegraph"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
