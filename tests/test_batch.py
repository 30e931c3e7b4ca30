import pytest

from solitonaead.aesgcm import AesGcm
from solitonaead.api import UnsupportedError
from solitonaead.batch import BatchContext, Span
from solitonaead.chacha import ChaCha20Poly1305


def test_span_length_follows_data():
    assert len(Span(b"abcdef")) == 6
    assert len(Span()) == 0


def test_aesgcm_batch_is_unsupported():
    batch = BatchContext()
    contexts = [AesGcm(bytes(32), bytes(12))]
    with pytest.raises(UnsupportedError):
        batch.aesgcm_update(contexts, [Span(b"hello")])


def test_chacha_batch_is_unsupported():
    batch = BatchContext()
    contexts = [ChaCha20Poly1305(bytes(32), bytes(12))]
    with pytest.raises(UnsupportedError):
        batch.chacha_update(contexts, [Span(b"hello")])


def test_unsupported_leaves_stream_contexts_usable():
    batch = BatchContext()
    ctx = ChaCha20Poly1305(bytes(32), bytes(12))
    with pytest.raises(UnsupportedError):
        batch.chacha_update([ctx], [Span(b"abc")])
    ct = ctx.encrypt(b"abc")
    assert len(ct) == 3


def test_wipe_marks_context_and_updates_stay_unsupported():
    batch = BatchContext()
    assert batch.wiped is False
    batch.wipe()
    assert batch.wiped is True
    with pytest.raises(UnsupportedError):
        batch.aesgcm_update([], [])


def test_unsupported_error_is_not_implemented():
    batch = BatchContext()
    with pytest.raises(NotImplementedError):
        batch.chacha_update([], [])