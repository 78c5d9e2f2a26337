import pytest

from marks_linker.detect_core import detect_structure, find_header_row, is_massar_layout
from marks_linker.errors import NotAGradesheet
from marks_linker.models import UNAVAILABLE_LABEL, MarkCategory

from conftest import NAMES


def test_canonical_headers(canonical_grid):
    s = detect_structure(canonical_grid)

    assert s.id_column == 0
    assert s.name_column == 1
    assert s.column_for(MarkCategory.FARD1) == 2
    assert s.column_for(MarkCategory.FARD2) == 3
    assert s.column_for(MarkCategory.FARD3) == 4
    assert s.column_for(MarkCategory.ACTIVITIES) == 5
    assert s.column_for(MarkCategory.FARD4) is None
    assert s.header_row == 0
    assert s.data_start_row == 1
    assert s.additional_columns == ()
    for cat in (MarkCategory.FARD1, MarkCategory.FARD2, MarkCategory.FARD3, MarkCategory.ACTIVITIES):
        assert s.confidence[cat] >= 0.9
    assert s.confidence[MarkCategory.FARD4] == 0.0
    assert s.header_label(None) == UNAVAILABLE_LABEL


def test_massar_score_subcolumns(massar_grid):
    assert is_massar_layout(massar_grid)
    s = detect_structure(massar_grid)

    assert s.layout == "massar"
    assert s.header_row == 2
    assert s.data_start_row == 4
    assert s.id_column == 0
    assert s.name_column == 1
    assert s.column_for(MarkCategory.FARD1) == 3
    assert s.column_for(MarkCategory.FARD2) == 5
    assert s.column_for(MarkCategory.ACTIVITIES) == 7
    assert s.column_for(MarkCategory.FARD3) is None
    assert s.confidence[MarkCategory.FARD1] == pytest.approx(0.9)
    # the test header cells themselves are not extra mark columns
    assert s.additional_columns == ()


def test_numbered_test_headers_and_additional_columns():
    rows = [["رقم", "الاسم", "اختبار رقم 1", "اختبار رقم 2", "امتحان موحد"]]
    rows += [[i + 1, name, 10, 12, 14] for i, name in enumerate(NAMES)]
    s = detect_structure(rows)

    assert s.layout == "generic"
    assert s.column_for(MarkCategory.FARD1) == 2
    assert s.column_for(MarkCategory.FARD2) == 3
    assert s.confidence[MarkCategory.FARD2] == pytest.approx(0.7)
    assert [a.index for a in s.additional_columns] == [4]


def test_name_column_next_to_identifier_without_name_header():
    rows = [["رقم", "", "الفرض 1", "الفرض 2"]]
    rows += [[i + 1, name, 10, 12] for i, name in enumerate(NAMES)]
    s = detect_structure(rows)
    assert s.id_column == 0
    assert s.name_column == 1


def test_generic_positional_confidences(generic_grid):
    assert find_header_row(generic_grid) is None
    s = detect_structure(generic_grid)

    assert s.layout == "generic"
    assert s.header_row is None
    assert s.data_start_row == 0
    assert s.name_column == 1
    assert s.id_column == 0
    expected = {
        MarkCategory.FARD1: (2, 0.8),
        MarkCategory.FARD2: (3, 0.7),
        MarkCategory.FARD3: (4, 0.6),
        MarkCategory.FARD4: (5, 0.5),
    }
    for cat, (col, conf) in expected.items():
        assert s.column_for(cat) == col
        assert s.confidence[cat] == pytest.approx(conf)
    assert s.column_for(MarkCategory.ACTIVITIES) is None
    assert s.header_label(2) == "Column 3"


def test_generic_activities_rerank():
    rows = []
    for i, name in enumerate(NAMES):
        low = 8 + (i % 3)
        rows.append([i + 1, name, low, low + 1, 18 - (i % 2), low + 0.5])
    s = detect_structure(rows)

    assert s.column_for(MarkCategory.ACTIVITIES) == 4
    assert s.confidence[MarkCategory.ACTIVITIES] == pytest.approx(0.9)
    assert s.column_for(MarkCategory.FARD1) == 2
    assert s.column_for(MarkCategory.FARD2) == 3
    assert s.column_for(MarkCategory.FARD3) == 5
    for cat in (MarkCategory.FARD1, MarkCategory.FARD2, MarkCategory.FARD3):
        assert s.confidence[cat] == pytest.approx(0.3)
    assert s.column_for(MarkCategory.FARD4) is None


def test_too_few_rows():
    rows = [["رقم", "الاسم", "الفرض 1"]] + [[1, "محمد العلوي", 10]] * 3
    with pytest.raises(NotAGradesheet):
        detect_structure(rows)


def test_numbers_only_sheet_is_rejected():
    rows = [[i, i * 2, i * 3] for i in range(12)]
    with pytest.raises(NotAGradesheet):
        detect_structure(rows)


def test_empty_grid_is_rejected():
    with pytest.raises(NotAGradesheet):
        detect_structure([])


@pytest.mark.parametrize("name", ["سعيد الطالبي", "Salma Nomani"])
def test_name_containing_a_header_word_is_data(generic_grid, name):
    rows = [list(r) for r in generic_grid]
    rows[0][1] = name
    assert find_header_row(rows) is None

    s = detect_structure(rows)
    assert s.header_row is None
    assert s.data_start_row == 0
    assert s.id_column == 0
    assert s.name_column == 1
    assert s.column_for(MarkCategory.FARD1) == 2


def test_mostly_numeric_row_is_never_a_header(generic_grid):
    rows = [list(r) for r in generic_grid]
    # a whole-token header word, but the rest of the row is marks
    rows[0][1] = "محمد الطالب"
    assert find_header_row(rows) is None
    assert detect_structure(rows).column_for(MarkCategory.FARD1) == 2


def test_split_name_columns_are_joined(split_name_grid):
    s = detect_structure(split_name_grid)
    assert s.id_column == 0
    assert s.name_column == 2
    assert s.name_parts == (1,)
    assert s.column_for(MarkCategory.FARD1) == 3
    assert s.column_for(MarkCategory.ACTIVITIES) == 5


def test_remarks_column_is_not_a_name_part():
    rows = [["رقم", "الاسم", "ملاحظات", "الفرض 1"]]
    rows += [[i + 1, name, "حاضر دائما", 10] for i, name in enumerate(NAMES)]
    assert detect_structure(rows).name_parts == ()


def test_single_name_column_has_no_parts(canonical_grid, generic_grid):
    assert detect_structure(canonical_grid).name_parts == ()
    assert detect_structure(generic_grid).name_parts == ()
