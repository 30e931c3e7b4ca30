import pytest

from solitonaead import api
from solitonaead.api import (
    Backend,
    Feature,
    get_backend,
    get_chacha_backend,
    get_ghash_backend,
    query_caps,
    select_backend,
    select_chacha_backend,
    select_ghash_backend,
    version_string,
)
from solitonaead.diagnostics import diagnostics


def test_version_string_names_release():
    assert version_string().endswith("v0.1.1")


def test_vaes_selects_vaes_backend():
    assert select_backend(Feature.VAES | Feature.AVX2) is Backend.VAES


def test_no_vaes_falls_back_to_scalar():
    assert select_backend(Feature.AESNI | Feature.PCLMUL) is Backend.AES_SCALAR
    assert select_backend(Feature(0)) is Backend.AES_SCALAR


@pytest.mark.parametrize("caps", [Feature.PCLMUL, Feature.VPCLMUL, Feature.PCLMUL | Feature.PMULL])
def test_clmul_ghash_backend(caps):
    assert select_ghash_backend(caps) is Backend.CLMUL


def test_pmull_ghash_backend():
    assert select_ghash_backend(Feature.PMULL | Feature.NEON) is Backend.PMULL


@pytest.mark.parametrize("caps", [Feature(0), Feature.VAES, Feature.AVX2])
def test_ghash_backend_defers_to_aes_backend(caps):
    assert select_ghash_backend(caps) is select_backend(caps)


def test_chacha_backend_choice():
    assert select_chacha_backend(Feature.AVX2 | Feature.NEON) is Backend.AVX2
    assert select_chacha_backend(Feature.NEON) is Backend.CHACHA_NEON
    assert select_chacha_backend(Feature.VAES) is Backend.CHACHA_SCALAR


def test_parse_x86_flags():
    text = "processor\t: 0\nflags\t\t: fpu sse2 aes pclmulqdq avx2 vaes vpclmulqdq\n"
    caps = api._parse_cpuinfo(text, "x86_64")
    assert caps == (
        Feature.AESNI | Feature.PCLMUL | Feature.AVX2 | Feature.VAES | Feature.VPCLMUL
    )


def test_parse_x86_avx512():
    caps = api._parse_cpuinfo("flags : avx512f sse4_1\n", "x86_64")
    assert caps == Feature.AVX512F


def test_parse_arm_features():
    text = "Features\t: fp asimd aes pmull sha1\n"
    assert api._parse_cpuinfo(text, "aarch64") == Feature.NEON | Feature.PMULL


def test_parse_arm_always_has_neon():
    assert api._parse_cpuinfo("", "aarch64") == Feature.NEON


def test_parse_unknown_machine_has_no_features():
    assert api._parse_cpuinfo("flags : avx2 vaes\n", "riscv64") == Feature(0)


def test_query_caps_consistent_with_cached_selection():
    caps = query_caps()
    assert get_backend() is select_backend(caps)
    assert get_chacha_backend() is select_chacha_backend(caps)
    assert get_ghash_backend() is select_ghash_backend(caps)


def test_get_backend_records_name_in_diagnostics():
    get_backend.cache_clear()
    diagnostics.reset()
    backend = get_backend()
    assert diagnostics.selected_backend == backend.value