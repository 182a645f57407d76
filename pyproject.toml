[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "exrview"
version = "0.1.1"
description = "Inspect OpenEXR images from the command line: layers, channels, metadata, tone-mapped previews and folder thumbnails"
requires-python = ">=3.10"
keywords = ["exr", "openexr", "hdr", "image viewer", "tone mapping", "thumbnails", "metadata"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Graphics :: Viewers",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
exrview = "exrview.app:main"

[tool.hatch.build.targets.wheel]
packages = ["exrview"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
