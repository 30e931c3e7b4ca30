import pytest
from cryptography.hazmat.primitives.ciphers.aead import (
    ChaCha20Poly1305 as ReferenceAead,
)
from hypothesis import given, settings
from hypothesis import strategies as st

from solitonaead.api import AuthenticationError, InvalidInputError
from solitonaead.chacha import ChaCha20Poly1305, ChaChaState

RFC_KEY = bytes(range(0x80, 0xA0))
RFC_NONCE = bytes.fromhex("070000004041424344454647")
RFC_AAD = bytes.fromhex("50515253c0c1c2c3c4c5c6c7")
RFC_PLAINTEXT = (
    b"Ladies and Gentlemen of the class of '99: If I could offer you only one "
    b"tip for the future, sunscreen would be it."
)


def _encrypt(key, nonce, aad, plaintext):
    ctx = ChaCha20Poly1305(key, nonce)
    ctx.update_aad(aad)
    ct = ctx.encrypt(plaintext)
    return ct, ctx.encrypt_final()


def test_rfc8439_vector_tag():
    ct, tag = _encrypt(RFC_KEY, RFC_NONCE, RFC_AAD, RFC_PLAINTEXT)
    assert tag.hex() == "1ae10b594f09e26a7e902ecbd0600691"
    assert ct[:16].hex() == "d31a8d34648e60db7b86afbc53ef7ec2"


def test_rfc8439_vector_matches_reference():
    ct, tag = _encrypt(RFC_KEY, RFC_NONCE, RFC_AAD, RFC_PLAINTEXT)
    expected = ReferenceAead(RFC_KEY).encrypt(RFC_NONCE, RFC_PLAINTEXT, RFC_AAD)
    assert ct + tag == expected


@settings(max_examples=40, deadline=None)
@given(
    key=st.binary(min_size=32, max_size=32),
    nonce=st.binary(min_size=12, max_size=12),
    aad=st.binary(max_size=70),
    plaintext=st.binary(min_size=1, max_size=300),
)
def test_single_call_matches_reference(key, nonce, aad, plaintext):
    ct, tag = _encrypt(key, nonce, aad, plaintext)
    assert ct + tag == ReferenceAead(key).encrypt(nonce, plaintext, aad)


def test_decrypt_round_trip():
    ct, tag = _encrypt(RFC_KEY, RFC_NONCE, RFC_AAD, RFC_PLAINTEXT)
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    ctx.update_aad(RFC_AAD)
    assert ctx.decrypt(ct) == RFC_PLAINTEXT
    ctx.decrypt_final(tag)
    assert ctx.state is ChaChaState.FINAL


def test_tampered_tag_fails():
    ct, tag = _encrypt(RFC_KEY, RFC_NONCE, RFC_AAD, RFC_PLAINTEXT)
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    ctx.update_aad(RFC_AAD)
    ctx.decrypt(ct)
    bad = bytes([tag[0] ^ 1]) + tag[1:]
    with pytest.raises(AuthenticationError):
        ctx.decrypt_final(bad)


def test_tampered_ciphertext_fails():
    ct, tag = _encrypt(RFC_KEY, RFC_NONCE, RFC_AAD, RFC_PLAINTEXT)
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    ctx.update_aad(RFC_AAD)
    ctx.decrypt(bytes([ct[0] ^ 0x80]) + ct[1:])
    with pytest.raises(AuthenticationError):
        ctx.decrypt_final(tag)


def test_chunks_of_64_bytes_match_single_call():
    data = bytes(range(256)) * 2
    single_ct, single_tag = _encrypt(RFC_KEY, RFC_NONCE, b"", data)
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    ct = b"".join(ctx.encrypt(data[i : i + 64]) for i in range(0, len(data), 64))
    assert ct == single_ct
    assert ctx.encrypt_final() == single_tag


def test_split_aad_matches_single_aad():
    single = _encrypt(RFC_KEY, RFC_NONCE, RFC_AAD, RFC_PLAINTEXT)
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    ctx.update_aad(RFC_AAD[:5])
    ctx.update_aad(RFC_AAD[5:])
    ct = ctx.encrypt(RFC_PLAINTEXT)
    assert (ct, ctx.encrypt_final()) == single


def test_odd_chunks_round_trip_with_same_chunking():
    data = bytes(range(50))
    enc = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    ct = enc.encrypt(data[:10]) + enc.encrypt(data[10:])
    tag = enc.encrypt_final()
    dec = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    pt = dec.decrypt(ct[:10]) + dec.decrypt(ct[10:])
    dec.decrypt_final(tag)
    assert pt == data


def test_odd_chunks_use_fresh_keystream_blocks():
    data = bytes(20)
    single_ct, _ = _encrypt(RFC_KEY, RFC_NONCE, b"", data)
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    split = ctx.encrypt(data[:10]) + ctx.encrypt(data[10:])
    assert split[:10] == single_ct[:10]
    assert split[10:] != single_ct[10:]


def test_empty_message_with_aligned_aad_matches_reference():
    aad = bytes(range(32))
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    ctx.update_aad(aad)
    tag = ctx.encrypt_final()
    assert tag == ReferenceAead(RFC_KEY).encrypt(RFC_NONCE, b"", aad)


def test_aad_after_data_is_rejected():
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    ctx.encrypt(b"abc")
    with pytest.raises(InvalidInputError):
        ctx.update_aad(b"late")


def test_use_after_final_is_rejected():
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    ctx.encrypt_final()
    with pytest.raises(InvalidInputError):
        ctx.encrypt(b"more")
    with pytest.raises(InvalidInputError):
        ctx.encrypt_final()


@pytest.mark.parametrize(
    "key, nonce",
    [(bytes(31), bytes(12)), (bytes(32), bytes(11)), (None, bytes(12))],
)
def test_bad_key_or_nonce_is_rejected(key, nonce):
    with pytest.raises(InvalidInputError):
        ChaCha20Poly1305(key, nonce)


def test_short_tag_is_rejected():
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    with pytest.raises(InvalidInputError):
        ctx.decrypt_final(bytes(15))


def test_state_progression():
    ctx = ChaCha20Poly1305(RFC_KEY, RFC_NONCE)
    assert ctx.state is ChaChaState.INIT
    ctx.update_aad(b"x")
    assert ctx.state is ChaChaState.AAD
    ctx.encrypt(b"y")
    assert ctx.state is ChaChaState.UPDATE


def test_wiped_context_is_unusable():
    with ChaCha20Poly1305(RFC_KEY, RFC_NONCE) as ctx:
        ctx.encrypt(b"data")
    with pytest.raises(InvalidInputError):
        ctx.encrypt(b"data")