[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wasabi"
version = "0.1.0"
description = "Hobby operating-system components over in-memory data: allocator, executor, ACPI/PCI parsing, HID decoding and bitmap graphics"
requires-python = ">=3.10"
dependencies = []
keywords = ["operating-system", "allocator", "acpi", "pci", "hid", "executor", "graphics", "uefi"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Operating System",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["wasabi"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"
