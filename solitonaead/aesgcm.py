"""Streaming AES-256-GCM.

The context keeps the expanded key and the powers of H across messages.
:meth:`AesGcm.reset` starts a new message under the same key.  Every call
to :meth:`AesGcm.update_aad`, :meth:`AesGcm.encrypt` or :meth:`AesGcm.decrypt`
pads its own last partial block, and a partial block uses up a counter value.
Messages fed in chunks that are not multiples of 16 bytes therefore
authenticate differently from a single call.
"""

from __future__ import annotations

import enum
import hmac

from solitonaead.api import (
    AuthenticationError,
    Backend,
    InvalidInputError,
    get_backend,
    get_ghash_backend,
)
from solitonaead.diagnostics import diagnostics
from solitonaead.ghash import (
    BLOCK_SIZE,
    ghash_final,
    ghash_update,
    ghash_update8,
    precompute_h_powers,
)
from solitonaead.kernels import BlockCipher, counter_block, fused_encrypt8

__all__ = ["GcmState", "AesGcm"]

TAG_SIZE = 16
STANDARD_IV_SIZE = 12
_H_POWER_COUNT = 16
_DEPTH = 8
_BATCH_BYTES = _DEPTH * BLOCK_SIZE
_COUNTER_MASK = 0xFFFFFFFF
_LENGTH_MASK = (1 << 64) - 1
_FIRST_DATA_COUNTER = 2
_TAG_COUNTER = 1
_ZERO_BLOCK = bytes(BLOCK_SIZE)


class GcmState(enum.Enum):
    """Where a context is in the life of one message."""

    INIT = enum.auto()
    AAD = enum.auto()
    UPDATE = enum.auto()
    FINAL = enum.auto()


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


def _init_iv_tail(remainder: bytes, len_bits: int) -> bytes:
    """Tail absorbed after the whole IV blocks when a context is created."""
    pad_bits = 128 * ((len_bits + 127) // 128) - len_bits
    total = (pad_bits + 64 + 64) // 8
    tail = bytearray(total)
    tail[: len(remainder)] = remainder
    tail[total - 8 :] = (len_bits & _LENGTH_MASK).to_bytes(8, "big")
    return bytes(tail)


def _reset_iv_tail(remainder: bytes, len_bits: int) -> bytes:
    """Tail absorbed after the whole IV blocks when a context is reset."""
    tail = bytearray(BLOCK_SIZE)
    tail[: len(remainder)] = remainder
    tail[8:] = (len_bits & _LENGTH_MASK).to_bytes(8, "big")
    return bytes(tail)


def _check_iv(iv: bytes | None) -> bytes:
    if iv is None:
        raise InvalidInputError("an IV is required")
    iv = bytes(iv)
    if not iv:
        raise InvalidInputError("the IV must not be empty")
    return iv


class AesGcm:
    """One AES-256-GCM stream: AAD, then data, then the tag."""

    def __init__(self, key: bytes, iv: bytes) -> None:
        diagnostics.increment("gcm_init_calls")
        if key is None:
            raise InvalidInputError("a key is required")
        iv = _check_iv(iv)
        self._backend: Backend | None = get_backend()
        self._ghash_backend: Backend | None = get_ghash_backend()
        self._cipher: BlockCipher | None = BlockCipher(key)
        self._h = self._cipher.encrypt_block(_ZERO_BLOCK)
        self._h_powers = precompute_h_powers(self._h, _H_POWER_COUNT)
        self._j0 = self._derive_j0(iv, _init_iv_tail)
        self._begin_message()

    def __enter__(self) -> AesGcm:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.wipe()

    @property
    def state(self) -> GcmState:
        """The stage the current message has reached."""
        return self._state

    def _derive_j0(self, iv: bytes, make_tail) -> bytes:
        if len(iv) == STANDARD_IV_SIZE:
            return iv + (1).to_bytes(4, "big")
        whole = len(iv) - len(iv) % BLOCK_SIZE
        acc = ghash_update(_ZERO_BLOCK, self._h, iv[:whole])
        return ghash_update(acc, self._h, make_tail(iv[whole:], len(iv) * 8))

    def _begin_message(self) -> None:
        self._ghash = _ZERO_BLOCK
        self._aad_len = 0
        self._ct_len = 0
        self._counter = _FIRST_DATA_COUNTER
        self._state = GcmState.INIT

    def _require_keyed(self) -> BlockCipher:
        if self._cipher is None:
            raise InvalidInputError("the context has been wiped")
        return self._cipher

    def _require_open(self) -> BlockCipher:
        cipher = self._require_keyed()
        if self._state is GcmState.FINAL:
            raise InvalidInputError("the message has already been finalised")
        return cipher

    def _advance(self, blocks: int) -> None:
        self._counter = (self._counter + blocks) & _COUNTER_MASK

    def reset(self, iv: bytes) -> None:
        """Start a new message under the same key with a new IV."""
        iv = _check_iv(iv)
        self._require_keyed()
        self._j0 = self._derive_j0(iv, _reset_iv_tail)
        self._begin_message()

    def update_aad(self, aad: bytes) -> None:
        """Absorb additional authenticated data; only before any data."""
        diagnostics.increment("gcm_aad_calls")
        if aad is None:
            raise InvalidInputError("AAD is required")
        self._require_keyed()
        if self._state not in (GcmState.INIT, GcmState.AAD):
            raise InvalidInputError("AAD must come before the data")
        aad = bytes(aad)
        self._state = GcmState.AAD
        self._aad_len += len(aad)
        self._ghash = ghash_update(self._ghash, self._h, aad)

    def _encrypt_batch(self, cipher: BlockCipher, chunk: bytes) -> bytes:
        if self._backend is Backend.VAES:
            diagnostics.record_batch(_DEPTH)
            ciphertext, self._ghash = fused_encrypt8(
                cipher, chunk, self._j0, self._counter, self._ghash, self._h_powers
            )
        elif self._ghash_backend is Backend.CLMUL:
            diagnostics.record_batch(_DEPTH)
            ciphertext = cipher.ctr_blocks(self._j0, self._counter, chunk)
            self._ghash = ghash_update8(self._ghash, self._h_powers, ciphertext)
        else:
            ciphertext = cipher.ctr_blocks(self._j0, self._counter, chunk)
            self._ghash = ghash_update(self._ghash, self._h, ciphertext)
        self._advance(_DEPTH)
        return ciphertext

    def encrypt(self, data: bytes) -> bytes:
        """Encrypt ``data`` and absorb the ciphertext; return the ciphertext."""
        diagnostics.increment("gcm_encrypt_calls")
        if data is None:
            raise InvalidInputError("data is required")
        cipher = self._require_open()
        data = bytes(data)
        self._state = GcmState.UPDATE
        self._ct_len += len(data)

        nblocks, remainder = divmod(len(data), BLOCK_SIZE)
        whole = nblocks * BLOCK_SIZE
        full_batches, tail_blocks = divmod(nblocks, _DEPTH)
        batched = full_batches * _BATCH_BYTES

        out = bytearray()
        for offset in range(0, batched, _BATCH_BYTES):
            out += self._encrypt_batch(cipher, data[offset : offset + _BATCH_BYTES])

        if tail_blocks:
            diagnostics.record_batch(tail_blocks)
            diagnostics.increment("tail_partial_blocks")
            ciphertext = cipher.ctr_blocks(self._j0, self._counter, data[batched:whole])
            self._advance(tail_blocks)
            self._ghash = ghash_update(self._ghash, self._h, ciphertext)
            out += ciphertext

        if remainder:
            diagnostics.increment("tail_sub_block_bytes", remainder)
            ciphertext = cipher.ctr_blocks(self._j0, self._counter, data[whole:])
            self._ghash = ghash_update(self._ghash, self._h, ciphertext)
            self._advance(1)
            out += ciphertext

        return bytes(out)

    def _compute_tag(self, cipher: BlockCipher) -> bytes:
        digest = ghash_final(self._ghash, self._h, self._aad_len, self._ct_len)
        mask = cipher.encrypt_block(counter_block(self._j0, _TAG_COUNTER))
        return _xor(digest, mask)

    def encrypt_final(self) -> bytes:
        """Finish the message and return its 16-byte tag."""
        diagnostics.increment("gcm_final_calls")
        cipher = self._require_open()
        tag = self._compute_tag(cipher)
        self._state = GcmState.FINAL
        return tag

    def decrypt(self, data: bytes) -> bytes:
        """Absorb the ciphertext ``data`` and return the plaintext.

        The plaintext must not be trusted until :meth:`decrypt_final` succeeds.
        """
        diagnostics.increment("gcm_decrypt_calls")
        if data is None:
            raise InvalidInputError("data is required")
        cipher = self._require_open()
        data = bytes(data)
        self._state = GcmState.UPDATE
        self._ct_len += len(data)
        self._ghash = ghash_update(self._ghash, self._h, data)

        nblocks, remainder = divmod(len(data), BLOCK_SIZE)
        plaintext = cipher.ctr_blocks(self._j0, self._counter, data)
        self._advance(nblocks + (1 if remainder else 0))
        return plaintext

    def decrypt_final(self, tag: bytes) -> None:
        """Finish the message; raise :class:`AuthenticationError` on a bad tag."""
        if tag is None:
            raise InvalidInputError("a tag is required")
        tag = bytes(tag)
        if len(tag) != TAG_SIZE:
            raise InvalidInputError(f"the tag must be {TAG_SIZE} bytes")
        cipher = self._require_open()
        computed = self._compute_tag(cipher)
        self._state = GcmState.FINAL
        if not hmac.compare_digest(computed, tag):
            raise AuthenticationError("authentication tag mismatch")

    def wipe(self) -> None:
        """Forget the key and all message state; the context is unusable after."""
        self._cipher = None
        self._backend = None
        self._ghash_backend = None
        self._h = _ZERO_BLOCK
        self._h_powers = []
        self._j0 = _ZERO_BLOCK
        self._begin_message()