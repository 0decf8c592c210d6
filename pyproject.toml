[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "transitrt"
version = "0.1.0"
description = "Public transport timetable model with real-time updates and journey routing helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["transit", "timetable", "gtfs", "gtfs-realtime", "routing", "raptor"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: GIS",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["transitrt"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
