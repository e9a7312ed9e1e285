[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dzfs"
version = "0.1.0"
description = "A small block-based filesystem with an inode table, per-process file tables and a disk-image tool"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "block device", "disk image", "inode", "bitmap allocator"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dzfs = "dzfs.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["dzfs"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
