import pytest

from serial_registry.services.extraction import (
    SERIAL_FULL_PATTERN,
    canonicalize_text,
    extract,
    is_valid_serial,
)


def test_extract_collapses_repeated_serials():
    text = "LB42836549R some noise MF71554741C LB42836549R"
    assert extract(text) == {"LB42836549R", "MF71554741C"}


def test_extract_is_case_and_punctuation_insensitive():
    assert extract("serial: lb42836549r.") == {"LB42836549R"}
    assert extract("(MF71554741C)") == {"MF71554741C"}


@pytest.mark.parametrize(
    "text",
    [
        "",
        "no serial here",
        "LB4283654R",          # seven digits
        "LB428365490R",        # nine digits
        "L842836549R",         # one letter prefix
        "XLB42836549R",        # glued to a longer word
        "LB42836549RX",
    ],
)
def test_extract_rejects_non_serials(text):
    assert extract(text) == set()


@pytest.mark.parametrize(
    "text",
    [
        "LB42836549R some noise MF71554741C LB42836549R",
        "ab12345678c\nAB12345678C  zz00000000z",
        "LB42836549RMF71554741C AA11111111A",
        "!!! @@ ### $$$",
        "lb 42836549 r",
    ],
)
def test_extract_is_deterministic_and_grammatical(text):
    first = extract(text)
    assert extract(text) == first
    assert all(SERIAL_FULL_PATTERN.match(candidate) for candidate in first)


def test_canonicalize_text_keeps_word_boundaries():
    assert canonicalize_text("lb-42 mf!") == "LB42 MF"
    assert canonicalize_text(None) == ""


def test_is_valid_serial():
    assert is_valid_serial("LB42836549R")
    assert is_valid_serial("lb-42836549-r")
    assert not is_valid_serial("LB4283654R")
    assert not is_valid_serial("")
