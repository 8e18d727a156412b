[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rv32isim"
version = "0.1.0"
description = "An RV32I instruction set simulator with CSR, timer and UART support, plus a small assembly source parser"
requires-python = ">=3.10"
dependencies = []
keywords = ["risc-v", "rv32i", "simulator", "emulator", "elf", "iss", "assembly"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rv32i-sim = "rv32isim.iss:main"
rv32i-asm = "rv32isim.assembler:main"

[tool.hatch.build.targets.wheel]
packages = ["rv32isim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
