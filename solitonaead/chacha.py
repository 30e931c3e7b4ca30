"""Streaming ChaCha20-Poly1305.

The ChaCha20 block counter starts at 1; block 0 supplies the one-time
Poly1305 key.  Each call to :meth:`ChaCha20Poly1305.encrypt` or
:meth:`ChaCha20Poly1305.decrypt` uses up whole 64-byte keystream blocks.
Data fed in chunks that are not multiples of 64 bytes therefore encrypts
differently from a single call.  Poly1305 absorbs its input as one stream.

The AAD is padded to 16 bytes when the first data arrives.  A message that
has AAD but no data keeps its AAD unpadded.
"""

from __future__ import annotations

import enum
import hmac

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from cryptography.hazmat.primitives.poly1305 import Poly1305

from solitonaead.api import (
    AuthenticationError,
    Backend,
    InvalidInputError,
    get_backend,
)

__all__ = ["ChaChaState", "ChaCha20Poly1305"]

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
_CHACHA_BLOCK = 64
_POLY_BLOCK = 16
_POLY_KEY_SIZE = 32
_COUNTER_MASK = 0xFFFFFFFF
_LENGTH_MASK = (1 << 64) - 1
_FIRST_DATA_COUNTER = 1


class ChaChaState(enum.Enum):
    """Where a context is in the life of one message."""

    INIT = enum.auto()
    AAD = enum.auto()
    UPDATE = enum.auto()
    FINAL = enum.auto()


def _check_len(value: bytes | None, size: int, what: str) -> bytes:
    if value is None:
        raise InvalidInputError(f"{what} is required")
    value = bytes(value)
    if len(value) != size:
        raise InvalidInputError(f"{what} must be {size} bytes, got {len(value)}")
    return value


def _chacha20_xor(key: bytes, nonce: bytes, counter: int, data: bytes) -> bytes:
    """XOR ``data`` with the ChaCha20 keystream that starts at block ``counter``."""
    if not data:
        return b""
    full_nonce = counter.to_bytes(4, "little") + nonce
    encryptor = Cipher(algorithms.ChaCha20(key, full_nonce), mode=None).encryptor()
    return encryptor.update(data)


def _padding(length: int) -> bytes:
    return bytes(-length % _POLY_BLOCK)


class ChaCha20Poly1305:
    """One ChaCha20-Poly1305 stream: AAD, then data, then the tag."""

    def __init__(self, key: bytes, nonce: bytes) -> None:
        key = _check_len(key, KEY_SIZE, "key")
        nonce = _check_len(nonce, NONCE_SIZE, "nonce")
        self._backend: Backend | None = get_backend()
        self._key: bytes | None = key
        self._nonce: bytes | None = nonce
        poly_key = _chacha20_xor(key, nonce, 0, bytes(_POLY_KEY_SIZE))
        self._poly: Poly1305 | None = Poly1305(poly_key)
        self._counter = _FIRST_DATA_COUNTER
        self._aad_len = 0
        self._ct_len = 0
        self._state = ChaChaState.INIT

    def __enter__(self) -> ChaCha20Poly1305:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.wipe()

    @property
    def state(self) -> ChaChaState:
        """The stage the current message has reached."""
        return self._state

    def _require_keyed(self) -> Poly1305:
        if self._poly is None:
            raise InvalidInputError("the context has been wiped")
        return self._poly

    def _require_open(self) -> Poly1305:
        poly = self._require_keyed()
        if self._state is ChaChaState.FINAL:
            raise InvalidInputError("the message has already been finalised")
        return poly

    def update_aad(self, aad: bytes) -> None:
        """Absorb additional authenticated data; only before any data."""
        if aad is None:
            raise InvalidInputError("AAD is required")
        poly = self._require_keyed()
        if self._state not in (ChaChaState.INIT, ChaChaState.AAD):
            raise InvalidInputError("AAD must come before the data")
        aad = bytes(aad)
        self._state = ChaChaState.AAD
        self._aad_len += len(aad)
        poly.update(aad)

    def _start_data(self, poly: Poly1305, length: int) -> None:
        if self._state is ChaChaState.AAD and self._aad_len % _POLY_BLOCK:
            poly.update(_padding(self._aad_len))
        self._state = ChaChaState.UPDATE
        self._ct_len += length

    def _keystream_xor(self, data: bytes) -> bytes:
        assert self._key is not None and self._nonce is not None
        out = _chacha20_xor(self._key, self._nonce, self._counter, data)
        blocks = -(-len(data) // _CHACHA_BLOCK)
        self._counter = (self._counter + blocks) & _COUNTER_MASK
        return out

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt ``data`` and absorb the ciphertext; return the ciphertext."""
        if data is None:
            raise InvalidInputError("data is required")
        poly = self._require_open()
        data = bytes(data)
        self._start_data(poly, len(data))
        ciphertext = self._keystream_xor(data)
        poly.update(ciphertext)
        return ciphertext

    def decrypt(self, data: bytes) -> bytes:
        """Absorb the ciphertext ``data`` and return the plaintext.

        The plaintext must not be trusted until :meth:`decrypt_final` succeeds.
        """
        if data is None:
            raise InvalidInputError("data is required")
        poly = self._require_open()
        data = bytes(data)
        self._start_data(poly, len(data))
        poly.update(data)
        return self._keystream_xor(data)

    def _compute_tag(self, poly: Poly1305) -> bytes:
        if self._ct_len % _POLY_BLOCK:
            poly.update(_padding(self._ct_len))
        poly.update(
            (self._aad_len & _LENGTH_MASK).to_bytes(8, "little")
            + (self._ct_len & _LENGTH_MASK).to_bytes(8, "little")
        )
        return poly.finalize()

    def encrypt_final(self) -> bytes:
        """Finish the message and return its 16-byte tag."""
        poly = self._require_open()
        tag = self._compute_tag(poly)
        self._state = ChaChaState.FINAL
        return tag

    def decrypt_final(self, tag: bytes) -> None:
        """Finish the message; raise :class:`AuthenticationError` on a bad tag."""
        tag = _check_len(tag, TAG_SIZE, "tag")
        poly = self._require_open()
        computed = self._compute_tag(poly)
        self._state = ChaChaState.FINAL
        if not hmac.compare_digest(computed, tag):
            raise AuthenticationError("authentication tag mismatch")

    def wipe(self) -> None:
        """Forget the key and all message state; the context is unusable after."""
        self._backend = None
        self._key = None
        self._nonce = None
        self._poly = None
        self._counter = _FIRST_DATA_COUNTER
        self._aad_len = 0
        self._ct_len = 0
        self._state = ChaChaState.INIT