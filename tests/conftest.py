from __future__ import annotations

from itertools import product
from typing import List

import pytest

NAMES = [
    "محمد العلوي", "فاطمة الزهراء", "يوسف بنعلي", "خديجة الإدريسي", "أمين التازي",
    "سلمى البقالي", "عبد الله الفاسي", "مريم الشرقاوي", "حمزة الرحماني", "إيمان الوزاني",
]

_FIRSTS = ["محمد", "أحمد", "يوسف", "عمر", "خالد", "سعيد", "حسن", "إبراهيم", "كريم", "رشيد", "نبيل", "طارق"]
_LASTS = ["العلوي", "الفاسي", "التازي", "البقالي", "الوزاني", "الإدريسي", "الشرقاوي", "الرحماني", "المرابط", "بنعلي"]

# fard1, fard2, activities per student (fard3 left blank)
MARKS = [
    (12.5, 14, 16), (9, 11.5, 15), (15, 13, 17.5), (8, 10, 12), (17, 16.5, 18),
    (11, 12, 14), (13.5, 9.5, 16), (10, 15, 13), (14, 14, 19), (16, 8.5, 15.5),
]


def many_names(count: int) -> List[str]:
    """Distinct two-token names, first names varying fastest."""
    return [f"{first} {last}" for last, first in product(_LASTS, _FIRSTS)][:count]


def canonical_rows(names: List[str]) -> List[list]:
    header = ["رقم", "اسم التلميذ", "الفرض 1", "الفرض 2", "الفرض 3", "الأنشطة"]
    rows = [header]
    for i, name in enumerate(names):
        f1, f2, act = MARKS[i % len(MARKS)]
        rows.append([i + 1, name, f1, f2, "", act])
    return rows


@pytest.fixture
def canonical_grid():
    return canonical_rows(NAMES)


@pytest.fixture
def massar_grid():
    rows = [
        ["المؤسسة: ثانوية الأمل"],
        ["القسم: الجذع المشترك"],
        ["رقم التلميذ", "إسم التلميذ", "الفرض 1", "", "الفرض 2", "", "الأنشطة", ""],
        ["", "", "الغياب", "النقطة", "الغياب", "النقطة", "الغياب", "النقطة"],
    ]
    for i, name in enumerate(NAMES):
        rows.append([f"J13000000{i}", name, "", None, "", None, "", None])
    return rows


@pytest.fixture
def generic_grid():
    # no header row; four mark columns with close means
    marks = [
        (12, 13, 11, 12.5), (10.5, 12, 13, 11), (14, 11.5, 12, 13), (11, 14, 10, 12),
        (13, 12.5, 11.5, 14), (9, 13, 12, 10.5), (12.5, 11, 13.5, 12), (14.5, 12, 11, 13),
        (10, 13.5, 12.5, 11.5), (13, 12, 14, 12),
    ]
    return [[i + 1, name, *m] for i, (name, m) in enumerate(zip(NAMES, marks))]


# surname and first name in separate columns; first names repeat
SPLIT_NAMES = [
    ("العلوي", "محمد"), ("الإدريسي", "محمد"), ("التازي", "سلمى"), ("البقالي", "يوسف"),
    ("الفاسي", "محمد"), ("الوزاني", "خديجة"), ("الشرقاوي", "أمين"), ("الرحماني", "مريم"),
    ("بنعلي", "حمزة"), ("المرابط", "إيمان"),
]


@pytest.fixture
def split_name_grid():
    rows = [["رقم", "النسب", "الاسم", "الفرض 1", "الفرض 2", "الأنشطة"]]
    for i, (surname, first) in enumerate(SPLIT_NAMES):
        f1, f2, act = MARKS[i]
        rows.append([i + 1, surname, first, f1, f2, act])
    return rows
