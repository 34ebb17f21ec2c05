from immutables import Map

from pyreducex import update_in, update_item_in_array, update_object


def test_update_object_copies():
    old = {"text": "a", "completed": False}

    new = update_object(old, completed=True)

    assert new == {"text": "a", "completed": True}
    assert old == {"text": "a", "completed": False}


def test_update_object_returns_same_reference_without_changes():
    old = {"text": "a"}

    assert update_object(old, text=old["text"]) is old


def test_update_object_keeps_map_type():
    new = update_object(Map({"a": 1}), b=2)

    assert isinstance(new, Map)
    assert new["b"] == 2


def test_update_item_in_array_preserves_other_items():
    todos = ({"id": 1, "completed": False}, {"id": 2, "completed": False})

    new = update_item_in_array(todos, 2, lambda todo: update_object(todo, completed=not todo["completed"]))

    assert new[0] is todos[0]
    assert new[1] == {"id": 2, "completed": True}


def test_update_in_nested_path():
    state = {"pagination": {"stargazers": {"page": 1}}, "other": {"x": 1}}

    new = update_in(state, ["pagination", "stargazers", "page"], lambda page: page + 1)

    assert new["pagination"]["stargazers"]["page"] == 2
    assert new["other"] is state["other"]
    assert state["pagination"]["stargazers"]["page"] == 1


def test_update_in_creates_missing_branches():
    new = update_in({}, ["a", "b"], lambda value: value or 5)

    assert new == {"a": {"b": 5}}


def test_update_in_returns_same_reference_without_changes():
    state = {"a": {"b": 1}}

    assert update_in(state, ["a", "b"], lambda value: value) is state


def test_update_in_on_map():
    state = Map({"a": Map({"b": 1})})

    new = update_in(state, ["a", "b"], lambda value: value + 1)

    assert isinstance(new, Map)
    assert new["a"]["b"] == 2
