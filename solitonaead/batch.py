"""Multi-stream batch interface.

Batched processing of several streams is not supported: both batch updates
raise :class:`~solitonaead.api.UnsupportedError`.  Process each stream
through its own context instead.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence

from solitonaead.aesgcm import AesGcm
from solitonaead.api import UnsupportedError
from solitonaead.chacha import ChaCha20Poly1305

__all__ = ["Span", "BatchContext", "MAX_BATCH_SIZE"]

MAX_BATCH_SIZE = 256


@dataclasses.dataclass(frozen=True)
class Span:
    """Input of one stream in a batch: plaintext to encrypt or ciphertext to decrypt."""

    data: bytes = b""

    def __len__(self) -> int:
        return len(self.data)


class BatchContext:
    """Per-core batch context."""

    def __init__(self) -> None:
        self._wiped = False

    @property
    def wiped(self) -> bool:
        """Whether :meth:`wipe` has been called."""
        return self._wiped

    def aesgcm_update(
        self, contexts: Sequence[AesGcm], spans: Sequence[Span]
    ) -> list[bytes]:
        """Process several AES-GCM streams at once (not supported)."""
        raise UnsupportedError("batched AES-GCM processing is not supported")

    def chacha_update(
        self, contexts: Sequence[ChaCha20Poly1305], spans: Sequence[Span]
    ) -> list[bytes]:
        """Process several ChaCha20-Poly1305 streams at once (not supported)."""
        raise UnsupportedError("batched ChaCha20-Poly1305 processing is not supported")

    def wipe(self) -> None:
        """Clear the batch context."""
        self._wiped = True