import pytest
from pydantic import ValidationError

from conftest import DAY, HOUR, MINUTE, NOW
from tab_management.tab_filter import (
    FilterOptions,
    SortBy,
    TimeFilter,
    apply_filters,
    group_tabs,
    sort_tabs,
    tabs_in_group,
)


@pytest.fixture
def tabs(make_tab):
    return [
        make_tab("https://www.github.com/org/repo", "Repo", last_accessed=NOW - 2 * DAY),
        make_tab("https://docs.python.org/3/", "python docs", last_accessed=NOW - 5 * MINUTE),
        make_tab("https://github.com/issues", "Issues", last_accessed=NOW - 3 * HOUR),
        make_tab("chrome://settings", "Settings", last_accessed=NOW - 10 * DAY),
        make_tab("https://github.com/pulls", "", last_accessed=NOW - MINUTE),
    ]


def ids(tabs):
    return [tab.id for tab in tabs]


def test_zero_time_filter_excludes_nothing(tabs):
    result = apply_filters(tabs, FilterOptions(time_filter=0), now=NOW)
    assert sorted(ids(result)) == sorted(ids(tabs))


def test_time_filter_keeps_tabs_inactive_for_at_least_threshold(tabs):
    result = apply_filters(tabs, FilterOptions(time_filter=TimeFilter.ONE_DAY), now=NOW)
    assert [tab.title for tab in result] == ["Repo", "Settings"]


def test_time_filter_boundary_is_inclusive(make_tab):
    tab = make_tab(last_accessed=NOW - HOUR)
    assert apply_filters([tab], FilterOptions(time_filter=HOUR), now=NOW) == [tab]
    assert apply_filters([tab], FilterOptions(time_filter=HOUR + 1), now=NOW) == []


def test_search_is_case_insensitive_over_title_and_url(tabs):
    result = apply_filters(tabs, FilterOptions(search_term="GitHub"), now=NOW)
    assert len(result) == 3
    for tab in result:
        assert "GITHUB" in tab.title.upper() or "GITHUB" in tab.url.upper()
    for tab in tabs:
        if tab not in result:
            assert "GITHUB" not in tab.title.upper() and "GITHUB" not in tab.url.upper()


def test_search_matches_title_only(tabs):
    result = apply_filters(tabs, FilterOptions(search_term="PYTHON DOCS"), now=NOW)
    assert [tab.title for tab in result] == ["python docs"]


def test_search_and_time_filter_combine(tabs):
    options = FilterOptions(search_term="github", time_filter=TimeFilter.ONE_HOUR)
    result = apply_filters(tabs, options, now=NOW)
    assert [tab.title for tab in result] == ["Issues", "Repo"]


def test_default_sort_is_most_recently_used_first(tabs):
    result = apply_filters(tabs, FilterOptions(), now=NOW)
    accessed = [tab.last_accessed for tab in result]
    assert accessed == sorted(accessed, reverse=True)


def test_title_sort_falls_back_to_url(tabs):
    result = sort_tabs(tabs, SortBy.TITLE)
    assert [tab.title or tab.url for tab in result] == [
        "https://github.com/pulls", "Issues", "python docs", "Repo", "Settings"
    ]


def test_url_sort(tabs):
    result = sort_tabs(tabs, SortBy.URL)
    assert [tab.url for tab in result] == sorted((tab.url for tab in tabs), key=str.casefold)


@pytest.mark.parametrize("sort_by", list(SortBy))
def test_sorting_is_idempotent(tabs, sort_by):
    once = sort_tabs(tabs, sort_by)
    assert ids(sort_tabs(once, sort_by)) == ids(once)


def test_unknown_last_access_counts_as_long_inactive(make_tab):
    never = make_tab("https://a.test", "Never", last_accessed=0)
    recent = make_tab("https://b.test", "Recent", last_accessed=NOW - MINUTE)
    assert never.last_accessed == 0
    assert apply_filters([never, recent], FilterOptions(time_filter=TimeFilter.ONE_HOUR), now=NOW) == [never]
    assert apply_filters([never, recent], FilterOptions(), now=NOW) == [recent, never]


def test_sort_is_stable_for_ties(make_tab):
    first = make_tab("https://a.test", "Same", last_accessed=NOW)
    second = make_tab("https://b.test", "Same", last_accessed=NOW)
    assert sort_tabs([first, second], SortBy.TITLE) == [first, second]
    assert sort_tabs([first, second], SortBy.LAST_ACCESSED) == [first, second]


def test_grouped_view_partitions_filtered_set(tabs):
    visible = apply_filters(tabs, FilterOptions(), now=NOW)
    groups = group_tabs(visible)
    members = [tab.id for group in groups.values() for tab in group]
    assert sorted(members) == sorted(ids(visible))
    assert len(members) == len(set(members))
    sizes = [len(group) for group in groups.values()]
    assert sizes == sorted(sizes, reverse=True)
    assert list(groups)[0] == "github.com"


def test_group_ties_keep_first_seen_order(make_tab):
    visible = [
        make_tab("https://b.test/1"),
        make_tab("https://a.test/1"),
        make_tab("https://a.test/2"),
        make_tab("https://c.test/1"),
        make_tab("https://b.test/2"),
    ]
    groups = group_tabs(visible)
    assert list(groups) == ["b.test", "a.test", "c.test"]
    assert [tab.url for tab in groups["b.test"]] == ["https://b.test/1", "https://b.test/2"]


def test_tabs_in_group(tabs):
    assert [tab.title for tab in tabs_in_group("github.com", tabs)] == ["Repo", "Issues", ""]


def test_filter_options_reject_negative_time_filter():
    with pytest.raises(ValidationError):
        FilterOptions(time_filter=-1)


def test_filter_options_accept_wire_values():
    options = FilterOptions.model_validate({"sort_by": "title", "view_mode": "grouped", "window_scope": "all"})
    assert options.sort_by == SortBy.TITLE
    assert options.view_mode.value == "grouped"
