# solitonaead

Streaming authenticated encryption with AES-256-GCM and ChaCha20-Poly1305.
You feed data in piece by piece, and the tag is produced or checked at the
end. AES-GCM authentication runs through a GHASH engine that you can also
use directly. Block encryption and the ChaCha20 and Poly1305 primitives come
from the `cryptography` library.

## Installation

```
pip install solitonaead
```

To run the test suite:

```
pip install "solitonaead[test]"
pytest
```

## AES-256-GCM

```python
from solitonaead.aesgcm import AesGcm
from solitonaead.api import AuthenticationError

key = bytes(32)          # made-up all-zero key, for illustration only
iv = bytes(12)

enc = AesGcm(key, iv)
enc.update_aad(b"header")
ciphertext = enc.encrypt(b"the whole message")
tag = enc.encrypt_final()

dec = AesGcm(key, iv)
dec.update_aad(b"header")
plaintext = dec.decrypt(ciphertext)
try:
    dec.decrypt_final(tag)
except AuthenticationError:
    plaintext = None     # never use plaintext whose tag did not verify
```

`AesGcm` can be used as a context manager. It calls `wipe()` on exit, and
after that the context cannot be used. The `state` property reports a
`GcmState`: `INIT`, `AAD`, `UPDATE` or `FINAL`.

Points to keep in mind:

- Each call to `update_aad`, `encrypt` or `decrypt` zero-pads its own last
  partial block, and a partial block uses up a counter value. Split a message
  into chunks whose lengths are multiples of 16 bytes, except the last one,
  and split it the same way on both sides. Otherwise the ciphertext and tag
  differ from those of a single call.
- With a 12-byte IV the initial counter block is the IV followed by
  `00000001`. Any other non-empty IV is hashed with GHASH. For IV lengths
  that are multiples of 16 this follows NIST SP 800-38D. For other lengths,
  the padding used by the constructor differs from the padding used by
  `reset()`.
- `reset(iv)` starts a new message under the same key. It keeps the expanded
  key and the precomputed powers of H.

## ChaCha20-Poly1305

```python
from solitonaead.chacha import ChaCha20Poly1305

enc = ChaCha20Poly1305(bytes(32), bytes(12))
enc.update_aad(b"header")
ciphertext = enc.encrypt(b"message")
tag = enc.encrypt_final()

dec = ChaCha20Poly1305(bytes(32), bytes(12))
dec.update_aad(b"header")
plaintext = dec.decrypt(ciphertext)
dec.decrypt_final(tag)   # raises AuthenticationError on a bad tag
```

The key is 32 bytes and the nonce 12. Block 0 of the keystream gives the
one-time Poly1305 key, and data starts at block 1. Each `encrypt` or
`decrypt` call uses up whole 64-byte keystream blocks. Split data into
chunks whose lengths are multiples of 64 bytes, except the last one, or use
a single call. The AAD is padded to 16 bytes when the first data arrives. A
message with AAD but no data leaves its AAD unpadded.

## Errors

Errors are raised as exceptions, all subclasses of `SolitonError` from
`solitonaead.api`:

- `InvalidInputError` (also a `ValueError`): a missing or wrongly sized key,
  IV, nonce or tag, a call in the wrong state such as AAD after data or use
  of a finished or wiped context, or an out-of-range GHASH operand.
- `AuthenticationError`: the tag does not match.
- `UnsupportedError` (also a `NotImplementedError`): raised by the batch
  calls.

## GHASH

`solitonaead.ghash` works on 16-byte blocks in GCM order:

- `gf_mul(x, h)` multiplies two blocks in GF(2^128).
- `precompute_h_powers(h, count=16)` returns `[H^1, ..., H^count]`.
- `ghash_update(state, h, data)` absorbs data one block at a time and
  zero-pads a short last block.
- `ghash_update8(state, h_powers, data)` absorbs data eight blocks at a time
  with one reduction per group. The result is the same.
- `fold_blocks(state, blocks, h_powers)` computes
  `(X ^ C0)*H^n ^ ... ^ C(n-1)*H`.
- `ghash_final(state, h, aad_len, ct_len)` absorbs the length block. The
  lengths are given in bytes.

The lower-level helpers work on 128-bit integers in the byte-reversed
domain. `to_lepoly` and `from_lepoly` convert blocks. `clmul64`,
`clmul_product` (four partial products) and `karatsuba_product` (three
multiplies) return unreduced products as `(lo, hi)`, and `reduce_256`
reduces them.

## Kernels

`solitonaead.kernels` provides:

- `BlockCipher(key)`: AES-256 with `encrypt_block` and `ctr_blocks`.
- `counter_block(j0, counter)`: the first 12 bytes of J0 followed by a
  32-bit big-endian counter.
- The batched kernels `fused_encrypt8`, `fused_encrypt16` and
  `pipelined_encrypt16`. Each returns `(ciphertext, new_state)`.
  `pipelined_encrypt16` XORs the incoming state in after the fold, so it
  agrees with GHASH only when that state is zero.

## Backends and diagnostics

`solitonaead.api.query_caps()` reads `/proc/cpuinfo` and returns a
`Feature` flag. Where that file cannot be read it returns no features.
`select_backend`, `select_ghash_backend` and `select_chacha_backend` map
features to a `Backend`. `get_backend()`, `get_ghash_backend()` and
`get_chacha_backend()` make that choice once for the running machine. In
`AesGcm` the choice only decides whether whole 8-block groups go through
`fused_encrypt8`, `ghash_update8` or plain `ghash_update`. Every path gives
the same output. `version_string()` returns the engine version.

`solitonaead.diagnostics` holds a shared `diagnostics` instance of
`Diagnostics`, which the engine updates as it runs. It counts GCM calls,
batch sizes, tail handling and kernel calls. Its other methods are:

- `record_provider_update` and `check_alignment`.
- `recommendations()`: a list of performance recommendations.
- `report()` / `print_report(file=None)`: a text report.
- `reset()`: clears the counters.

## What this package does not do

- Multi-stream batching is not implemented. `BatchContext.aesgcm_update` and
  `BatchContext.chacha_update` in `solitonaead.batch` always raise
  `UnsupportedError`. Use one context per stream.
- There is no command-line program. The package is a library only.
- No code is hardware-specific. The selected `Backend` names a code path
  within this package, not native acceleration.