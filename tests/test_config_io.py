import json

import pytest

from marks_linker.config_io import load_config_any, load_defaults, load_records
from marks_linker.models import MarkCategory
from marks_linker.scoring_defaults import DEFAULTS


def test_load_defaults_yaml(tmp_path):
    p = tmp_path / "scoring.yaml"
    p.write_text("fuzzy_threshold: 0.85\nweights:\n  edit_distance: 0.2\n", encoding="utf-8")
    d = load_defaults(p)
    assert d.fuzzy_threshold == 0.85
    assert d.weights.edit_distance == 0.2
    assert d.candidate_floor == DEFAULTS.candidate_floor


def test_load_defaults_json(tmp_path):
    p = tmp_path / "scoring.json"
    p.write_text(json.dumps({"mark_max": 10}), encoding="utf-8")
    assert load_defaults(p).mark_max == 10


def test_unknown_setting_rejected(tmp_path):
    p = tmp_path / "scoring.yml"
    p.write_text("fuzzy_treshold: 0.9\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_defaults(p)


def test_config_root_must_be_mapping(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config_any(p)


def test_config_without_extension_accepts_json(tmp_path):
    p = tmp_path / "scoring"
    p.write_text('{"context_bonus": 0.05}', encoding="utf-8")
    assert load_defaults(p).context_bonus == 0.05


def test_load_records_list(tmp_path):
    p = tmp_path / "records.yaml"
    p.write_text(
        "- name: محمد العلوي\n"
        "  marks:\n"
        "    fard1: 12.5\n"
        "    الأنشطة: '١٦'\n"
        "    bonus: 3\n"
        "- name: فاطمة الزهراء\n",
        encoding="utf-8",
    )
    records = load_records(p)
    assert [r.name for r in records] == ["محمد العلوي", "فاطمة الزهراء"]
    assert records[0].mark(MarkCategory.FARD1) == 12.5
    assert records[0].mark(MarkCategory.ACTIVITIES) == 16.0
    assert len(records[0].marks) == 2
    assert records[1].marks == {}


def test_load_records_students_mapping(tmp_path):
    p = tmp_path / "records.json"
    data = {"students": [{"name": "يوسف بنعلي", "marks": {"fard2": "13,5", "fard3": "غائب"}}]}
    p.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    (record,) = load_records(p)
    assert record.mark(MarkCategory.FARD2) == 13.5
    assert record.mark(MarkCategory.FARD3) is None


@pytest.mark.parametrize(
    "payload",
    [
        [{"marks": {"fard1": 10}}],
        [{"name": "  ", "marks": {}}],
        [{"name": "علي", "marks": [10, 12]}],
        {"rows": []},
    ],
)
def test_load_records_rejects_malformed(tmp_path, payload):
    p = tmp_path / "records.json"
    p.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(ValueError):
        load_records(p)


def test_quoted_numbers_are_cast(tmp_path):
    p = tmp_path / "scoring.yaml"
    p.write_text(
        'fuzzy_threshold: "0.85"\nbatch_min_records: "60"\nweights:\n  edit_distance: "0.2"\n',
        encoding="utf-8",
    )
    d = load_defaults(p)
    assert d.fuzzy_threshold == 0.85
    assert d.batch_min_records == 60
    assert isinstance(d.batch_min_records, int)
    assert d.weights.edit_distance == 0.2


@pytest.mark.parametrize(
    "text",
    [
        "base: 1\n",
        "fuzzy_threshold: abc\n",
        "sample_rows: 2.5\n",
        "min_rows: true\n",
        "weights:\n  partial: many\n",
    ],
)
def test_bad_setting_values_rejected(tmp_path, text):
    p = tmp_path / "scoring.yaml"
    p.write_text(text, encoding="utf-8")
    with pytest.raises(ValueError):
        load_defaults(p)
