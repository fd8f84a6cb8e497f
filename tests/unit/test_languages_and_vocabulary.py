"""Unit tests for language hints and the model vocabulary."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from conftest import BYE, DOT, GOOD, HELLO, TS_BEGIN, WORLD, make_vocabulary
from vadscribe.errors import InvalidLanguageError, StatusCode
from vadscribe.models.base import SpecialTokens, Vocabulary
from vadscribe.transcription.languages import LANGUAGES, normalize_language


@pytest.mark.parametrize(
    ("hint", "expected"),
    [
        ("en", "en"),
        (" DE ", "de"),
        ("German", "de"),
        ("haitian creole", "ht"),
        ("auto", None),
        ("", None),
        (None, None),
    ],
)
def test_normalize_language(hint: str | None, expected: str | None) -> None:
    """Codes, names and the auto sentinel are normalized."""
    assert normalize_language(hint) == expected


def test_normalize_language_rejects_unknown() -> None:
    """Unknown hints raise with the ``INVALID_LANGUAGE`` status."""
    with pytest.raises(InvalidLanguageError) as excinfo:
        normalize_language("xx")
    assert excinfo.value.status == StatusCode.INVALID_LANGUAGE


def test_language_table() -> None:
    """The table maps codes to lower-case English names."""
    assert len(LANGUAGES) == 100
    assert all(name == name.lower() for name in LANGUAGES.values())


def test_vocabulary_layout() -> None:
    """Size and id classes follow the special token layout."""
    vocabulary = make_vocabulary()
    assert vocabulary.size == TS_BEGIN + 1501
    assert vocabulary.is_text(HELLO)
    assert not vocabulary.is_text(vocabulary.special.eot)
    assert vocabulary.is_timestamp(TS_BEGIN)
    assert vocabulary.timestamp_seconds(TS_BEGIN + 50) == pytest.approx(1.0)


def test_vocabulary_decode_and_encode() -> None:
    """Pieces detokenize with word boundaries; encoding is greedy longest match."""
    vocabulary = make_vocabulary()
    assert vocabulary.decode([HELLO, WORLD, DOT, TS_BEGIN]) == "hello world."
    assert vocabulary.decode([GOOD, BYE]) == "goodbye"
    assert vocabulary.encode("hello goodbye.") == [HELLO, GOOD, BYE, DOT]
    assert vocabulary.encode("zzz") == []


def test_vocabulary_validation() -> None:
    """Inconsistent layouts are rejected."""
    special = SpecialTokens(
        eot=5,
        sot=6,
        sot_prev=7,
        translate=8,
        transcribe=9,
        no_timestamps=10,
        timestamp_begin=3,
    )
    with pytest.raises(ValidationError):
        Vocabulary(tokens=["a"] * 11, special=special)
