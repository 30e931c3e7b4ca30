[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "solitonaead"
version = "0.4.0"
description = "Streaming AES-256-GCM and ChaCha20-Poly1305 authenticated encryption with an explicit GHASH engine"
requires-python = ">=3.10"
keywords = ["aead", "aes-gcm", "chacha20-poly1305", "ghash", "poly1305", "cryptography"]
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
    "Topic :: Security :: Cryptography",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = ["cryptography"]

[project.optional-dependencies]
test = ["pytest", "hypothesis"]

[tool.hatch.build.targets.wheel]
packages = ["solitonaead"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
