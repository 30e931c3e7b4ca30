"""Errors, CPU capability flags and backend selection."""

from __future__ import annotations

import enum
import functools
import platform
from pathlib import Path

from solitonaead.diagnostics import diagnostics

__all__ = [
    "SolitonError",
    "InvalidInputError",
    "AuthenticationError",
    "UnsupportedError",
    "Feature",
    "Backend",
    "version_string",
    "query_caps",
    "select_backend",
    "select_ghash_backend",
    "select_chacha_backend",
    "get_backend",
    "get_ghash_backend",
    "get_chacha_backend",
]

_VERSION = "soliton v0.1.1"
_CPUINFO = Path("/proc/cpuinfo")

_X86_MACHINES = frozenset({"x86_64", "amd64", "i386", "i486", "i586", "i686", "x86"})
_ARM64_MACHINES = frozenset({"aarch64", "arm64"})


class SolitonError(Exception):
    """Base class for every error raised by the engine."""


class InvalidInputError(SolitonError, ValueError):
    """An argument or the context state does not allow the operation."""


class AuthenticationError(SolitonError):
    """The authentication tag did not verify."""


class UnsupportedError(SolitonError, NotImplementedError):
    """The requested operation is not supported."""


class Feature(enum.IntFlag):
    """CPU capability bits."""

    VAES = 1 << 0
    VPCLMUL = 1 << 1
    AVX2 = 1 << 2
    AVX512F = 1 << 3
    NEON = 1 << 4
    PMULL = 1 << 5
    AESNI = 1 << 6
    PCLMUL = 1 << 7


class Backend(enum.Enum):
    """Implementation families the dispatcher can choose between."""

    AES_SCALAR = "aes-scalar"
    CHACHA_SCALAR = "chacha-scalar"
    AVX2 = "avx2"
    VAES = "vaes"
    CLMUL = "clmul"
    NEON = "neon"
    CHACHA_NEON = "chacha-neon"
    PMULL = "pmull"


_X86_FLAGS = {
    "avx2": Feature.AVX2,
    "vaes": Feature.VAES,
    "vpclmulqdq": Feature.VPCLMUL,
    "aes": Feature.AESNI,
    "pclmulqdq": Feature.PCLMUL,
    "avx512f": Feature.AVX512F,
}


def version_string() -> str:
    """Return the engine's version string."""
    return _VERSION


def _flag_tokens(text: str, key: str) -> set[str]:
    tokens: set[str] = set()
    for line in text.splitlines():
        name, sep, value = line.partition(":")
        if sep and name.strip().lower() == key:
            tokens.update(value.split())
    return tokens


def _parse_cpuinfo(text: str, machine: str) -> Feature:
    """Derive capability bits from the text of a cpuinfo listing."""
    machine = machine.lower()
    caps = Feature(0)
    if machine in _X86_MACHINES:
        flags = _flag_tokens(text, "flags")
        for flag, feature in _X86_FLAGS.items():
            if flag in flags:
                caps |= feature
    elif machine in _ARM64_MACHINES:
        # NEON is always present on ARMv8.
        caps |= Feature.NEON
        features = _flag_tokens(text, "features")
        if "aes" in features:
            caps |= Feature.NEON
        if "pmull" in features:
            caps |= Feature.PMULL
    return caps


def query_caps() -> Feature:
    """Detect the capabilities of the running CPU."""
    try:
        text = _CPUINFO.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return Feature(0)
    return _parse_cpuinfo(text, platform.machine())


def select_backend(caps: Feature) -> Backend:
    """Choose the AES backend for the given capabilities."""
    if caps & Feature.VAES:
        return Backend.VAES
    return Backend.AES_SCALAR


def select_ghash_backend(caps: Feature) -> Backend:
    """Choose the GHASH backend for the given capabilities."""
    if caps & (Feature.PCLMUL | Feature.VPCLMUL):
        return Backend.CLMUL
    if caps & Feature.PMULL:
        return Backend.PMULL
    return select_backend(caps)


def select_chacha_backend(caps: Feature) -> Backend:
    """Choose the ChaCha20 backend for the given capabilities."""
    if caps & Feature.AVX2:
        return Backend.AVX2
    if caps & Feature.NEON:
        return Backend.CHACHA_NEON
    return Backend.CHACHA_SCALAR


@functools.lru_cache(maxsize=None)
def get_backend() -> Backend:
    """Return the AES backend for this machine, chosen once."""
    backend = select_backend(query_caps())
    diagnostics.set_backend(backend.value)
    return backend


@functools.lru_cache(maxsize=None)
def get_ghash_backend() -> Backend:
    """Return the GHASH backend for this machine, chosen once."""
    caps = query_caps()
    if caps & (Feature.PCLMUL | Feature.VPCLMUL | Feature.PMULL):
        return select_ghash_backend(caps)
    return get_backend()


@functools.lru_cache(maxsize=None)
def get_chacha_backend() -> Backend:
    """Return the ChaCha20 backend for this machine, chosen once."""
    return select_chacha_backend(query_caps())