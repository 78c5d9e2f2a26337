import pytest

from marks_linker.tools.arabic_text import (
    arabic_letter_count,
    cell_text,
    has_arabic,
    normalize,
    parse_number,
    phonetic_signature,
    tokens,
)

RLM = chr(0x200F)
ZWNJ = chr(0x200C)
NBSP = chr(0x00A0)
TATWEEL = chr(0x0640)
FATHA = chr(0x064E)
SHADDA = chr(0x0651)


@pytest.mark.parametrize("value", [None, "", "   ", "\t\n"])
def test_empty_input_gives_empty_string(value):
    assert normalize(value) == ""


def test_hamza_and_teh_marbuta_fold():
    assert normalize("أمينة") == normalize("امينه")
    assert normalize("إيمان") == "ايمان"
    assert normalize("آمال") == "امال"


def test_alef_maqsura_and_ocr_confusables_fold():
    assert normalize("محمذ العلوى") == normalize("محمد العلوي")
    assert normalize("زينب") == normalize("رينب")


def test_invisible_characters_and_tatweel_removed():
    noisy = f"{RLM}محـ{TATWEEL}ـمد{ZWNJ}{NBSP}العلوي"
    assert normalize(noisy) == normalize("محمد العلوي")


def test_diacritics_removed():
    assert normalize("مُحَمَّد") == "محمد"
    assert normalize(f"م{FATHA}ح{SHADDA}د") == "محد"


def test_arabic_digits_and_punctuation():
    assert normalize("الفرض ٢") == "الفرض 2"
    assert normalize("ر.ت") == "ر ت"
    assert normalize("  اسم   |  التلميذ ") == normalize("اسم التلميذ")


def test_numbers_are_stringified():
    assert normalize(3.0) == "3"
    assert normalize(12) == "12"


@pytest.mark.parametrize("text", ["محمذ العلوى", "Élève  Nom", f"{RLM}فاطمة{NBSP}الزهراء", "عبد الله بن علي"])
def test_idempotent(text):
    once = normalize(text)
    assert normalize(once) == once


def test_tokens_and_phonetic_signature():
    assert tokens(normalize(" يوسف   بنعلي ")) == ["يوسف", "بنعلي"]
    assert phonetic_signature("صابر") == phonetic_signature("سابر")
    assert phonetic_signature("خالد") == phonetic_signature("حالد")


def test_arabic_detection_helpers():
    assert has_arabic("Ali علي")
    assert not has_arabic("Ali")
    assert not has_arabic(12)
    assert arabic_letter_count("محمد 12") == 4


def test_cell_text():
    assert cell_text(None) == ""
    assert cell_text(7.0) == "7"
    assert cell_text("  الفرض 1 ") == "الفرض 1"


@pytest.mark.parametrize(
    "value, expected",
    [
        (12, 12.0),
        (12.5, 12.5),
        ("12,5", 12.5),
        ("١٢٫٥", 12.5),
        (" 15 ", 15.0),
        ("abc", None),
        ("", None),
        (None, None),
        (True, None),
        (float("nan"), None),
    ],
)
def test_parse_number(value, expected):
    assert parse_number(value) == expected
