"""GHASH arithmetic in GF(2^128).

Blocks are 16-byte strings in GCM specification order.  The carry-less
multiplication helpers work on the byte-reversed ("lepoly") representation,
in which a block becomes the 128-bit integer read little-endian from
``to_lepoly(block)``.  Equivalently, it is the integer read big-endian from the
block itself.  In that form the GCM coefficient of x^i sits at bit 127 - i.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from solitonaead.api import InvalidInputError

__all__ = [
    "to_lepoly",
    "from_lepoly",
    "clmul64",
    "clmul_product",
    "karatsuba_product",
    "reduce_256",
    "gf_mul",
    "precompute_h_powers",
    "ghash_update",
    "ghash_update8",
    "fold_blocks",
    "ghash_final",
]

BLOCK_SIZE = 16
_MASK64 = (1 << 64) - 1
_MASK128 = (1 << 128) - 1
_POLY = (1 << 128) | 0x87  # x^128 + x^7 + x^2 + x + 1
_ZERO_BLOCK = bytes(BLOCK_SIZE)
_FOLD_DEPTH = 8


def _check_block(block: bytes) -> bytes:
    block = bytes(block)
    if len(block) != BLOCK_SIZE:
        raise InvalidInputError(f"expected a {BLOCK_SIZE}-byte block, got {len(block)}")
    return block


def to_lepoly(block: bytes) -> bytes:
    """Convert a block from specification order to the byte-reversed domain."""
    return _check_block(block)[::-1]


def from_lepoly(block: bytes) -> bytes:
    """Convert a block from the byte-reversed domain back to specification order."""
    return _check_block(block)[::-1]


def _to_int(block: bytes) -> int:
    return int.from_bytes(to_lepoly(block), "little")


def _from_int(value: int) -> bytes:
    return from_lepoly(value.to_bytes(BLOCK_SIZE, "little"))


def _check_range(value: int, bits: int) -> None:
    if not 0 <= value < (1 << bits):
        raise InvalidInputError(f"operand does not fit in {bits} bits")


def clmul64(a: int, b: int) -> int:
    """Carry-less product of two 64-bit integers (at most 127 bits)."""
    _check_range(a, 64)
    _check_range(b, 64)
    result = 0
    while b:
        if b & 1:
            result ^= a
        a <<= 1
        b >>= 1
    return result


def _halves(value: int) -> tuple[int, int]:
    return value & _MASK64, value >> 64


def clmul_product(a: int, b: int) -> tuple[int, int]:
    """Unreduced 256-bit carry-less product from four partial products.

    Returns the ``(lo, hi)`` 128-bit halves.
    """
    _check_range(a, 128)
    _check_range(b, 128)
    a_lo, a_hi = _halves(a)
    b_lo, b_hi = _halves(b)
    p00 = clmul64(a_lo, b_lo)
    p01 = clmul64(a_lo, b_hi)
    p10 = clmul64(a_hi, b_lo)
    p11 = clmul64(a_hi, b_hi)
    cross = p01 ^ p10
    lo = p00 ^ ((cross << 64) & _MASK128)
    hi = p11 ^ (cross >> 64)
    return lo, hi


def karatsuba_product(a: int, b: int) -> tuple[int, int]:
    """Unreduced 256-bit carry-less product from three multiplies.

    Returns the ``(lo, hi)`` 128-bit halves.
    """
    _check_range(a, 128)
    _check_range(b, 128)
    a_lo, a_hi = _halves(a)
    b_lo, b_hi = _halves(b)
    lo = clmul64(a_lo, b_lo)
    hi = clmul64(a_hi, b_hi)
    mid = clmul64(a_lo ^ a_hi, b_lo ^ b_hi) ^ lo ^ hi
    return lo ^ ((mid << 64) & _MASK128), hi ^ (mid >> 64)


def _reverse_bits(value: int, width: int) -> int:
    return int(format(value, f"0{width}b")[::-1], 2)


def reduce_256(lo: int, hi: int) -> int:
    """Reduce a product of two lepoly values to a 128-bit lepoly value."""
    _check_range(lo, 128)
    _check_range(hi, 128)
    product = (hi << 128) | lo
    if product >> 255:
        raise InvalidInputError("not the product of two 128-bit values")
    # Bring coefficient x^k to bit k, reduce, then reflect back.
    poly = _reverse_bits(product, 255)
    for bit in range(254, 127, -1):
        if (poly >> bit) & 1:
            poly ^= _POLY << (bit - 128)
    return _reverse_bits(poly, 128)


def gf_mul(x: bytes, h: bytes) -> bytes:
    """Multiply two blocks in the GHASH field."""
    return _from_int(reduce_256(*karatsuba_product(_to_int(x), _to_int(h))))


def precompute_h_powers(h: bytes, count: int = 16) -> list[bytes]:
    """Return ``[H^1, H^2, ..., H^count]``."""
    if count < 1:
        raise InvalidInputError("at least one power is needed")
    h = _check_block(h)
    powers = [h]
    while len(powers) < count:
        powers.append(gf_mul(powers[-1], h))
    return powers


def _blocks(data: bytes) -> Iterable[bytes]:
    data = bytes(data)
    for offset in range(0, len(data), BLOCK_SIZE):
        yield data[offset : offset + BLOCK_SIZE].ljust(BLOCK_SIZE, b"\0")


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


def ghash_update(state: bytes, h: bytes, data: bytes) -> bytes:
    """Absorb ``data`` one block at a time; a short last block is zero-padded."""
    state = _check_block(state)
    h = _check_block(h)
    for block in _blocks(data):
        state = gf_mul(_xor(state, block), h)
    return state


def fold_blocks(state: bytes, blocks: Sequence[bytes], h_powers: Sequence[bytes]) -> bytes:
    """Absorb n blocks at once: (X ^ C0)*H^n ^ C1*H^(n-1) ^ ... ^ C(n-1)*H.

    ``h_powers[i]`` must hold H^(i+1).  All partial products are summed
    unreduced and reduced once.
    """
    state = _check_block(state)
    blocks = [_check_block(block) for block in blocks]
    count = len(blocks)
    if count == 0:
        return state
    if count > len(h_powers):
        raise InvalidInputError(f"{count} blocks need {count} powers of H")
    lo = hi = 0
    for index, block in enumerate(blocks):
        value = _to_int(block)
        if index == 0:
            value ^= _to_int(state)
        part_lo, part_hi = karatsuba_product(value, _to_int(h_powers[count - 1 - index]))
        lo ^= part_lo
        hi ^= part_hi
    return _from_int(reduce_256(lo, hi))


def ghash_update8(state: bytes, h_powers: Sequence[bytes], data: bytes) -> bytes:
    """Absorb ``data`` eight blocks at a time, the rest one block at a time."""
    if len(h_powers) < _FOLD_DEPTH:
        raise InvalidInputError(f"need at least {_FOLD_DEPTH} powers of H")
    data = bytes(data)
    chunk = _FOLD_DEPTH * BLOCK_SIZE
    full = len(data) - len(data) % chunk
    for offset in range(0, full, chunk):
        group = data[offset : offset + chunk]
        blocks = [group[i : i + BLOCK_SIZE] for i in range(0, chunk, BLOCK_SIZE)]
        state = fold_blocks(state, blocks, h_powers)
    return ghash_update(state, h_powers[0], data[full:])


def ghash_final(state: bytes, h: bytes, aad_len: int, ct_len: int) -> bytes:
    """Absorb the length block; lengths are given in bytes."""
    bit_lengths = []
    for length in (aad_len, ct_len):
        if length < 0 or length * 8 >> 64:
            raise InvalidInputError("length out of range")
        bit_lengths.append(length * 8)
    lengths = bit_lengths[0].to_bytes(8, "big") + bit_lengths[1].to_bytes(8, "big")
    return gf_mul(_xor(_check_block(state), lengths), _check_block(h))