from datetime import datetime

import pytest

from text_utils import TextUtils

NOW_MS = 1_700_000_000_000


def test_timestamp_format():
    assert TextUtils.timestamp(datetime(2024, 3, 5, 7, 8, 9)) == "2024-03-05_07-08-09"


@pytest.mark.parametrize("raw,expected", [
    ("My Page", "my_page"),
    ('a<b>c:d"e/f\\g|h?i*j', "a_b_c_d_e_f_g_h_i_j"),
    ("  __Hello   World__  ", "hello_world"),
    ("", "untitled"),
    ("???", "untitled"),
])
def test_safe_filename(raw, expected):
    assert TextUtils.safe_filename(raw) == expected


def test_safe_filename_is_capped():
    assert len(TextUtils.safe_filename("x" * 500)) == 200


def test_replace_unsafe_keeps_case_and_spaces():
    assert TextUtils.replace_unsafe("Trip: Rome/Paris") == "Trip_ Rome_Paris"


def test_truncate():
    assert TextUtils.truncate("hello world", 8) == "hello..."
    assert TextUtils.truncate("short", 10) == "short"
    assert TextUtils.truncate("", 5) == ""


@pytest.mark.parametrize("delta_ms,expected", [
    (10_000, "NOW"),
    (5 * 60_000, "5MIN AGO"),
    (3 * 3_600_000, "3H AGO"),
    (2 * 86_400_000, "2D AGO"),
    (40 * 86_400_000, "1M AGO"),
    (400 * 86_400_000, "1Y AGO"),
    (-5_000, "FUTURE"),
])
def test_time_ago(delta_ms, expected):
    assert TextUtils.time_ago(NOW_MS - delta_ms, now_ms=NOW_MS) == expected


def test_time_ago_unknown():
    assert TextUtils.time_ago(0, now_ms=NOW_MS) == "UNKNOWN"
