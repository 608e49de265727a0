[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fhe_transpiler"
version = "0.1.0"
description = "Generate TFHE gate-level C++ code from booleanified IR functions."
requires-python = ">=3.10"
dependencies = []
keywords = ["fhe", "tfhe", "homomorphic-encryption", "transpiler", "code-generation", "ir"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Code Generators",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["fhe_transpiler"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
