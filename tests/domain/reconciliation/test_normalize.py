from __future__ import annotations

from destkit.domain.reconciliation import normalize_identifier


def test_normalize_identifier_lowercases() -> None:
    assert normalize_identifier("Vep@Beri.DZ") == "vep@beri.dz"


def test_normalize_identifier_keeps_whitespace_and_punctuation() -> None:
    assert normalize_identifier(" A+b@x.io ") == " a+b@x.io "


def test_normalize_identifier_is_idempotent() -> None:
    once = normalize_identifier("MiXeD@Example.com")

    assert normalize_identifier(once) == once
