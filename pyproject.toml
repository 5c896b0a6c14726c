[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vbcore"
version = "0.1.0"
description = "Virtual Boy hardware components: video processor, sound unit, timer, gamepad interface and save states"
requires-python = ">=3.10"
dependencies = []
keywords = ["emulator", "virtual-boy", "vip", "vsu", "savestate"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["vbcore"]

[tool.pytest.ini_options]
addopts = "-ra"
