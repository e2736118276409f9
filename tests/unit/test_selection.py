import pytest

from tab_management.selection import CheckState, SelectionTracker


@pytest.fixture
def tabs(make_tab):
    return [make_tab(f"https://site{i % 2}.test/{i}") for i in range(4)]


def test_toggle_adds_and_removes():
    tracker = SelectionTracker()
    tracker.toggle(3, True)
    tracker.toggle(5, True)
    tracker.toggle(3, False)
    assert 5 in tracker and 3 not in tracker
    assert len(tracker) == 1


def test_toggle_all_then_state_is_checked(tabs):
    tracker = SelectionTracker()
    tracker.toggle_all(True, tabs)
    assert tracker.select_all_state(tabs) == CheckState(checked=True, indeterminate=False)

    tracker.toggle(tabs[0].id, False)
    assert tracker.select_all_state(tabs) == CheckState(checked=False, indeterminate=True)


def test_toggle_all_only_touches_visible_tabs(tabs):
    tracker = SelectionTracker({999})
    tracker.toggle_all(True, tabs[:2])
    assert tracker.selected == {999, tabs[0].id, tabs[1].id}
    tracker.toggle_all(False, tabs[:2])
    assert tracker.selected == {999}


def test_empty_visible_set_is_unchecked():
    assert SelectionTracker({1}).select_all_state([]) == CheckState(False, False)


def test_group_state(tabs):
    group = [tab for tab in tabs if "site0" in tab.url]
    tracker = SelectionTracker()
    assert tracker.group_state("site0.test", group) == CheckState(False, False)
    tracker.toggle_group("site0.test", True, group)
    assert tracker.group_state("site0.test", group).checked
    tracker.toggle(group[0].id, False)
    assert tracker.group_state("site0.test", group).indeterminate
    assert tracker.select_all_state(tabs).indeterminate


def test_prune_drops_closed_tabs(tabs):
    tracker = SelectionTracker({tabs[0].id, tabs[1].id, 404})
    dropped = tracker.prune(tabs[1:])
    assert dropped == 2
    assert tracker.selected == {tabs[1].id}


def test_selected_tabs_follow_live_order(tabs):
    tracker = SelectionTracker({tabs[3].id, tabs[0].id})
    assert tracker.selected_tabs(tabs) == [tabs[0], tabs[3]]


def test_clear():
    tracker = SelectionTracker({1, 2})
    tracker.clear()
    assert len(tracker) == 0
