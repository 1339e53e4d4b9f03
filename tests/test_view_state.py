"""View state transitions and page reset rules."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from watchlog.view_state import ViewState


def test_initial_values():
    state = ViewState.initial(sort="title")

    assert state.collection == "main"
    assert state.page == 1
    assert state.rating_range == (0, 10)
    assert state.runtime == "all"
    assert state.sort == "title"
    assert not state.has_active_filters()


@pytest.mark.parametrize(
    "transition",
    [
        lambda state: state.toggle_genre("Drama", True),
        lambda state: state.toggle_year(1999, True),
        lambda state: state.toggle_tag("cozy", True),
        lambda state: state.with_search("alien"),
        lambda state: state.with_rating_range(5, 9),
        lambda state: state.with_runtime("long"),
        lambda state: state.with_sort("year"),
        lambda state: state.with_collection("towatch"),
        lambda state: state.reset_filters(),
    ],
)
def test_filter_sort_and_collection_changes_reset_page(transition):
    state = ViewState().with_page(4)
    assert transition(state).page == 1


def test_page_change_keeps_everything_else():
    state = ViewState().toggle_genre("Drama", True).with_sort("title")
    moved = state.with_page(3)

    assert moved.page == 3
    assert moved.model_dump(exclude={"page"}) == state.model_dump(exclude={"page"})


def test_toggles_add_once_and_remove():
    state = ViewState().toggle_tag("cozy", True).toggle_tag("cozy", True)
    assert state.tags == ("cozy",)
    assert state.has_active_filters()

    state = state.toggle_tag("cozy", False)
    assert state.tags == ()


def test_reset_filters_keeps_collection_and_sort():
    state = (
        ViewState()
        .with_collection("towatch")
        .with_sort("year")
        .toggle_genre("Drama", True)
        .with_runtime("short")
    )
    cleared = state.reset_filters()

    assert cleared.collection == "towatch"
    assert cleared.sort == "year"
    assert not cleared.has_active_filters()


def test_invalid_transitions_are_rejected():
    with pytest.raises(ValidationError):
        ViewState().with_page(0)
    with pytest.raises(ValidationError):
        ViewState().with_rating_range(9, 2)
    with pytest.raises(ValidationError):
        ViewState().with_sort("popularity")  # type: ignore[arg-type]


def test_state_is_immutable():
    state = ViewState()
    with pytest.raises(ValidationError):
        state.page = 2  # type: ignore[misc]
