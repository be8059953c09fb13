[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "securevault"
version = "0.1.0"
description = "HTTP key vault that stores public keys under ECC or Kyber envelope encryption"
requires-python = ">=3.10"
keywords = ["vault", "key management", "envelope encryption", "kyber", "secp256k1", "jwt"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "cryptography",
    "pyjwt",
    "flask",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
securevault = "securevault.app:main"

[tool.hatch.build.targets.wheel]
packages = ["securevault"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]
