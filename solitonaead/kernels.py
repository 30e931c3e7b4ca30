"""AES-256 block cipher and the batched encrypt-and-authenticate kernels.

Each kernel turns a fixed number of plaintext blocks into ciphertext with
AES-CTR.  It then absorbs the ciphertext into the GHASH state with one
aggregated fold over the powers of H.  ``h_powers[i]`` holds H^(i+1), as
returned by :func:`solitonaead.ghash.precompute_h_powers`.
"""

from __future__ import annotations

from collections.abc import Sequence

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from solitonaead.api import InvalidInputError
from solitonaead.diagnostics import diagnostics
from solitonaead.ghash import BLOCK_SIZE, fold_blocks

__all__ = [
    "BlockCipher",
    "counter_block",
    "fused_encrypt8",
    "fused_encrypt16",
    "pipelined_encrypt16",
]

KEY_SIZE = 32
_COUNTER_MASK = 0xFFFFFFFF
_NONCE_PREFIX = 12


def _check_len(value: bytes, size: int, what: str) -> bytes:
    value = bytes(value)
    if len(value) != size:
        raise InvalidInputError(f"{what} must be {size} bytes, got {len(value)}")
    return value


def _check_counter(counter: int) -> int:
    if counter < 0:
        raise InvalidInputError("counter must not be negative")
    return counter & _COUNTER_MASK


def counter_block(j0: bytes, counter: int) -> bytes:
    """Return J0's first 12 bytes followed by the 32-bit big-endian counter.

    The counter wraps modulo 2^32.
    """
    j0 = _check_len(j0, BLOCK_SIZE, "j0")
    return j0[:_NONCE_PREFIX] + _check_counter(counter).to_bytes(4, "big")


class BlockCipher:
    """AES-256 with an expanded key, used one block or one counter run at a time."""

    def __init__(self, key: bytes) -> None:
        key = _check_len(key, KEY_SIZE, "key")
        self._encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()

    def encrypt_block(self, block: bytes) -> bytes:
        """Encrypt a single 16-byte block."""
        return self._encryptor.update(_check_len(block, BLOCK_SIZE, "block"))

    def ctr_blocks(self, j0: bytes, counter: int, data: bytes) -> bytes:
        """XOR ``data`` with the keystream that starts at ``counter``.

        A short last block uses only the front of its keystream block.
        """
        data = bytes(data)
        start = _check_counter(counter)
        nblocks = -(-len(data) // BLOCK_SIZE)
        counters = b"".join(counter_block(j0, start + i) for i in range(nblocks))
        keystream = self._encryptor.update(counters) if counters else b""
        return bytes(p ^ k for p, k in zip(data, keystream))


def _encrypt_batch(
    cipher: BlockCipher, plaintext: bytes, j0: bytes, counter_start: int, depth: int
) -> tuple[bytes, list[bytes]]:
    plaintext = _check_len(plaintext, depth * BLOCK_SIZE, "plaintext")
    _check_len(j0, BLOCK_SIZE, "j0")
    ciphertext = cipher.ctr_blocks(j0, counter_start, plaintext)
    blocks = [
        ciphertext[offset : offset + BLOCK_SIZE]
        for offset in range(0, len(ciphertext), BLOCK_SIZE)
    ]
    return ciphertext, blocks


def _check_powers(h_powers: Sequence[bytes], depth: int) -> None:
    if len(h_powers) < depth:
        raise InvalidInputError(f"need at least {depth} powers of H")


def fused_encrypt8(
    cipher: BlockCipher,
    plaintext: bytes,
    j0: bytes,
    counter_start: int,
    state: bytes,
    h_powers: Sequence[bytes],
) -> tuple[bytes, bytes]:
    """Encrypt 8 blocks and fold them into the GHASH state.

    Returns ``(ciphertext, new_state)`` with
    new_state = (X ^ C0)*H^8 ^ C1*H^7 ^ ... ^ C7*H.
    """
    _check_powers(h_powers, 8)
    ciphertext, blocks = _encrypt_batch(cipher, plaintext, j0, counter_start, 8)
    new_state = fold_blocks(state, blocks, h_powers)
    diagnostics.increment("aes_vaes_calls")
    diagnostics.increment("aes_total_blocks", 8)
    return ciphertext, new_state


def fused_encrypt16(
    cipher: BlockCipher,
    plaintext: bytes,
    j0: bytes,
    counter_start: int,
    state: bytes,
    h_powers: Sequence[bytes],
) -> tuple[bytes, bytes]:
    """Encrypt 16 blocks and fold them into the GHASH state with one reduction.

    Returns ``(ciphertext, new_state)`` with
    new_state = (X ^ C0)*H^16 ^ C1*H^15 ^ ... ^ C15*H.
    """
    _check_powers(h_powers, 16)
    ciphertext, blocks = _encrypt_batch(cipher, plaintext, j0, counter_start, 16)
    return ciphertext, fold_blocks(state, blocks, h_powers)


def pipelined_encrypt16(
    cipher: BlockCipher,
    plaintext: bytes,
    j0: bytes,
    counter_start: int,
    state: bytes,
    h_powers: Sequence[bytes],
) -> tuple[bytes, bytes]:
    """Encrypt 16 blocks, fold them from a zero state, then XOR in ``state``.

    Returns ``(ciphertext, new_state)`` with
    new_state = (C0*H^16 ^ C1*H^15 ^ ... ^ C15*H) ^ X.
    The incoming state is combined after the fold rather than before it, so
    the result agrees with GHASH only when the incoming state is zero.
    """
    _check_powers(h_powers, 16)
    state = _check_len(state, BLOCK_SIZE, "state")
    ciphertext, blocks = _encrypt_batch(cipher, plaintext, j0, counter_start, 16)
    folded = fold_blocks(bytes(BLOCK_SIZE), blocks, h_powers)
    return ciphertext, bytes(a ^ b for a, b in zip(folded, state))