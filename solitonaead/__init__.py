"""Streaming AES-256-GCM and ChaCha20-Poly1305 with a GHASH engine, kernels and diagnostics."""

__version__ = "0.4.0"
__all__ = ["aesgcm", "api", "batch", "chacha", "diagnostics", "ghash", "kernels"]