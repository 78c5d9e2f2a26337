import pytest

from marks_linker import match_core
from marks_linker.match_core import NameMatcher, find_row
from marks_linker.models import MatchTier
from marks_linker.scoring_defaults import apply_overrides

from conftest import canonical_rows, many_names


def test_exact_match(canonical_grid):
    result = find_row("محمد العلوي", canonical_grid, 1, start_row=1)
    assert result.row == 1
    assert result.tier is MatchTier.EXACT
    assert result.score == 1.0


def test_ocr_variant_normalizes_to_exact(canonical_grid):
    result = find_row("محمذ العلوى", canonical_grid, 1, start_row=1)
    assert result.row == 1
    assert result.tier is MatchTier.EXACT


def test_header_row_is_not_a_candidate(canonical_grid):
    assert not find_row("اسم التلميذ", canonical_grid, 1, start_row=1).found


def test_partial_match_on_first_token(canonical_grid):
    result = find_row("يوسف الناصري", canonical_grid, 1, start_row=1)
    assert result.row == 3
    assert result.tier is MatchTier.PARTIAL


def test_fuzzy_tier():
    grid = [["سعاد بنعلي"], ["خالد المرابط"]]
    defaults = apply_overrides(fuzzy_threshold=0.4)
    result = find_row("خالدي المرابطي", grid, 0, defaults=defaults)
    assert result.row == 1
    assert result.tier is MatchTier.FUZZY
    assert 0.4 < result.score < 1.0
    # the default threshold is stricter
    assert not find_row("خالدي المرابطي", grid, 0).found


@pytest.mark.parametrize("name", [None, "", "   ", "xqzv"])
def test_unresolvable_names(canonical_grid, name):
    result = find_row(name, canonical_grid, 1, start_row=1)
    assert result.row is None
    assert result.score == 0.0


def test_batch_agrees_with_single_lookups():
    names = many_names(120)
    grid = canonical_rows(names)
    matcher = NameMatcher(grid, 1, start_row=1)
    assert matcher.use_indexed(len(names))

    batch = matcher.match_batch(names)
    assert [r.row for r in batch] == [matcher.find_row(n).row for n in names]
    assert [r.row for r in batch] == list(range(1, 121))


def test_indexed_batch_keeps_ocr_variants_exact():
    names = many_names(60)
    grid = canonical_rows(names)
    records = [n.replace("ي", "ى").replace("د", "ذ") for n in names]
    results = NameMatcher(grid, 1, start_row=1).match_batch(records)
    assert [r.row for r in results] == list(range(1, 61))
    assert all(r.tier is MatchTier.EXACT for r in results)


def test_duplicate_names_claim_distinct_rows():
    grid = [["محمد العلوي"], ["محمد العلوي"], ["سلمى البقالي"]]
    results = NameMatcher(grid, 0).match_batch(["محمد العلوي", "محمد العلوي"])
    assert [r.row for r in results] == [0, 1]


def test_single_lookup_returns_first_row_for_duplicates():
    grid = [["محمد العلوي"], ["محمد العلوي"]]
    assert find_row("محمد العلوي", grid, 0).row == 0


def test_positional_bonus_in_batches(monkeypatch):
    monkeypatch.setattr(match_core, "similarity", lambda a, b, defaults: 0.75)
    grid = [["سعاد بنعلي"], ["خالد المرابط"]]
    matcher = NameMatcher(grid, 0)

    results = matcher.match_batch(["نادية الفاسي", "كريم التازي"])
    assert [r.row for r in results] == [0, 1]
    assert all(r.tier is MatchTier.FUZZY for r in results)
    assert results[0].score == pytest.approx(0.85)

    # no bonus outside a batch
    assert not matcher.find_row("نادية الفاسي").found


def test_bonus_never_lifts_below_floor(monkeypatch):
    monkeypatch.setattr(match_core, "similarity", lambda a, b, defaults: 0.25)
    defaults = apply_overrides(fuzzy_threshold=0.3)
    grid = [["سعاد بنعلي"], ["خالد المرابط"]]
    results = NameMatcher(grid, 0, defaults=defaults).match_batch(["نادية الفاسي", "كريم التازي"])
    assert not any(r.found for r in results)


def test_matcher_skips_blank_and_short_rows():
    grid = [["رقم", "الاسم"], [1], [2, None], [3, "حمزة الرحماني"]]
    matcher = NameMatcher(grid, 1, start_row=1)
    assert matcher.candidate_count == 1
    assert matcher.find_row("حمزة الرحماني").row == 3


def test_repeated_batches_are_identical():
    names = many_names(80)
    grid = canonical_rows(names)
    records = list(reversed(names[:40])) + ["xqzv"]
    first = NameMatcher(grid, 1, start_row=1).match_batch(records)
    second = NameMatcher(grid, 1, start_row=1).match_batch(records)
    assert first == second


def test_reordered_full_name(canonical_grid):
    result = find_row("العلوي محمد", canonical_grid, 1, start_row=1)
    assert result.row == 1
    assert result.tier is MatchTier.REORDERED
    assert result.score == 1.0


def test_single_token_never_matches_reordered(canonical_grid):
    result = find_row("محمد", canonical_grid, 1, start_row=1)
    assert result.row == 1
    assert result.tier is MatchTier.PARTIAL


def test_indexed_batch_matches_reordered_names():
    names = many_names(120)
    grid = canonical_rows(names)
    records = [" ".join(reversed(n.split())) for n in names[:5]]
    results = NameMatcher(grid, 1, start_row=1).match_batch(records)
    assert [r.row for r in results] == [1, 2, 3, 4, 5]
    assert all(r.tier is MatchTier.REORDERED for r in results)


def test_extra_columns_are_joined_to_the_name():
    grid = [
        ["النسب", "الاسم"],
        ["العلوي", "محمد"],
        ["الإدريسي", "محمد"],
        ["12/09/2010", "سلمى"],
    ]
    matcher = NameMatcher(grid, 1, start_row=1, extra_columns=(0,))
    assert matcher.find_row("محمد الإدريسي").row == 2
    assert matcher.find_row("الإدريسي محمد").tier is MatchTier.EXACT
    # the date is not part of the name
    assert matcher.find_row("سلمى").tier is MatchTier.EXACT

    # without the surname column the first "محمد" wins
    assert find_row("محمد الإدريسي", grid, 1, start_row=1).row == 1


def test_fallback_prefilter_keeps_names_sharing_a_token(monkeypatch):
    grid = canonical_rows(many_names(110) + ["نوفل القباج"])
    defaults = apply_overrides(fuzzy_threshold=0.4)
    record = "نوفلي القباجي"
    expected = find_row(record, grid, 1, start_row=1, defaults=defaults)
    assert expected.row == 111

    matcher = NameMatcher(grid, 1, start_row=1, defaults=defaults)
    assert matcher.use_indexed(1)

    scored = []
    real = match_core.similarity

    def counting(a, b, d):
        scored.append(b)
        return real(a, b, d)

    monkeypatch.setattr(match_core, "similarity", counting)
    [result] = matcher.match_batch([record])

    assert result.row == expected.row
    assert result.tier is MatchTier.FUZZY
    assert 0 < len(scored) <= defaults.fallback_candidates
