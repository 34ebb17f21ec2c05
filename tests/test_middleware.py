import asyncio
import logging
import threading
import time

import pytest

from pyreducex import (
    Action, AwaitableMiddleware, BaseMiddleware, DebounceMiddleware, DevToolsMiddleware,
    ErrorMiddleware, LoggerMiddleware, Thunk, ThunkMiddleware, apply_middleware,
    combine_reducers, compose, create_reducer, create_store, get_action_type,
    global_error, global_error_handler, on, thunk
)


@pytest.fixture
def thunk_store(root_reducer):
    return create_store(root_reducer, None, apply_middleware(ThunkMiddleware()))


def test_deferred_computation_scenario(thunk_store):
    def start_loading(dispatch):
        dispatch({"type": "LOADING", "value": True})
        return "pending"

    result = thunk_store.dispatch(start_loading)

    assert result == "pending"
    assert thunk_store.get_state()["loading"] is True


def test_thunk_receives_get_state_and_extra_argument(root_reducer):
    api = object()
    store = create_store(root_reducer, None, apply_middleware(ThunkMiddleware(extra_argument=api)))
    seen = []

    def run(dispatch, get_state, extra):
        seen.append(extra)
        dispatch({"type": "INCREMENT"})
        return get_state()["count"]

    assert store.dispatch(run) == 1
    assert seen == [api]


def test_thunk_decorator_and_explicit_variant(thunk_store):
    @thunk
    def increment_twice():
        def run(dispatch, get_state):
            dispatch({"type": "INCREMENT"})
            dispatch({"type": "INCREMENT"})
            return get_state()["count"]
        return run

    deferred = increment_twice()

    assert isinstance(deferred, Thunk)
    assert deferred.name == "increment_twice"
    assert thunk_store.dispatch(deferred) == 2


def test_thunk_can_dispatch_thunks(thunk_store):
    def inner(dispatch):
        dispatch({"type": "INCREMENT"})

    def outer(dispatch):
        dispatch(inner)
        dispatch(inner)

    thunk_store.dispatch(outer)

    assert thunk_store.get_state()["count"] == 2


def test_thunk_failure_becomes_state():
    items_has_errored = create_reducer(False, ("ITEMS_HAS_ERRORED", lambda state, action: action["has_errored"]))
    store = create_store(
        combine_reducers({"has_errored": items_has_errored}),
        None,
        apply_middleware(ThunkMiddleware()),
    )

    def fetch_items(dispatch):
        try:
            raise OSError("network down")
        except OSError:
            dispatch({"type": "ITEMS_HAS_ERRORED", "has_errored": True})

    store.dispatch(fetch_items)

    assert store.get_state() == {"has_errored": True}


def test_middleware_runs_in_registration_order(store):
    order = []

    def recorder(name):
        def factory(store_api):
            def middleware(next_dispatch):
                def dispatch(action):
                    order.append(name)
                    return next_dispatch(action)
                return dispatch
            return middleware
        return factory

    store.apply_middleware(recorder("first"), recorder("second"))
    store.dispatch({"type": "INCREMENT"})

    assert order == ["first", "second"]


def test_middleware_can_swallow_and_replace(store):
    def swallow_unknown(store_api):
        def middleware(next_dispatch):
            def dispatch(action):
                if get_action_type(action) == "IGNORED":
                    return None
                if get_action_type(action) == "PLUS_ONE":
                    return next_dispatch({"type": "INCREMENT"})
                return next_dispatch(action)
            return dispatch
        return middleware

    store.apply_middleware(swallow_unknown)
    calls = []
    store.subscribe(lambda: calls.append(True))

    assert store.dispatch({"type": "IGNORED"}) is None
    store.dispatch({"type": "PLUS_ONE"})

    assert calls == [True]
    assert store.get_state()["count"] == 1


def test_middleware_failure_is_atomic(store):
    def exploding(store_api):
        def middleware(next_dispatch):
            def dispatch(action):
                raise RuntimeError("middleware failed")
            return dispatch
        return middleware

    before = store.get_state()
    store.apply_middleware(exploding)

    with pytest.raises(RuntimeError):
        store.dispatch({"type": "INCREMENT"})

    assert store.get_state() is before


def test_object_middleware_hooks(store):
    events = []

    class Hooks:
        def on_next(self, action, prev_state):
            events.append(("next", prev_state["count"]))

        def on_complete(self, next_state, action):
            events.append(("complete", next_state["count"]))

    store.apply_middleware(Hooks())
    store.dispatch({"type": "INCREMENT"})

    assert events == [("next", 0), ("complete", 1)]


def test_base_middleware_subclass_hooks(store):
    events = []

    class Recorder(BaseMiddleware):
        def on_next(self, action, prev_state):
            events.append("next")

        def on_complete(self, next_state, action):
            events.append("complete")

        def on_error(self, error, action):
            events.append("error")

    store.apply_middleware(Recorder)
    store.dispatch({"type": "INCREMENT"})

    assert events == ["next", "complete"]


def test_logger_middleware(store, caplog):
    store.apply_middleware(LoggerMiddleware())

    with caplog.at_level(logging.DEBUG, logger="pyreducex.middleware"):
        store.dispatch({"type": "INCREMENT"})

    assert "dispatching INCREMENT" in caplog.text
    assert "state after INCREMENT" in caplog.text


def test_logger_middleware_logs_errors(caplog):
    def fragile(state=None, action=None):
        if get_action_type(action) == "BOOM":
            raise ValueError("boom")
        return 0

    store = create_store(fragile, apply_middleware(LoggerMiddleware()))

    with caplog.at_level(logging.ERROR, logger="pyreducex.middleware"):
        with pytest.raises(ValueError):
            store.dispatch({"type": "BOOM"})

    assert "error in BOOM" in caplog.text


def test_logger_middleware_skips_disabled_level(store, monkeypatch):
    converted = []
    monkeypatch.setattr("pyreducex.middleware.to_dict", lambda state: converted.append(state) or state)
    quiet = logging.getLogger("pyreducex.tests.quiet")
    quiet.setLevel(logging.WARNING)
    store.apply_middleware(LoggerMiddleware(logger=quiet))

    store.dispatch({"type": "INCREMENT"})

    assert converted == []
    assert store.get_state()["count"] == 1


def test_error_middleware_dispatches_global_error(counter_reducer):
    def fragile(state=None, action=None):
        if get_action_type(action) == "BOOM":
            raise ValueError("boom")
        return counter_reducer(state, action)

    errors = create_reducer((), on(global_error, lambda state, action: state + (action.payload["error"],)))
    store = create_store(
        combine_reducers({"count": fragile, "errors": errors}),
        apply_middleware(ErrorMiddleware()),
    )
    reported = []
    global_error_handler.register_handler(reported.append)
    try:
        with pytest.raises(ValueError):
            store.dispatch({"type": "BOOM"})
    finally:
        global_error_handler.unregister_handler(reported.append)

    assert store.get_state()["errors"] == ("boom",)
    assert store.get_state()["count"] == 0
    assert len(reported) == 1


def test_devtools_records_history(root_reducer):
    devtools = DevToolsMiddleware()
    store = create_store(root_reducer, apply_middleware(devtools, ThunkMiddleware()))

    store.dispatch({"type": "INCREMENT"})

    def twice(dispatch):
        dispatch({"type": "INCREMENT"})
        dispatch({"type": "DECREMENT"})

    store.dispatch(twice)

    history = devtools.get_history()
    assert [get_action_type(action) for _, action, _ in history] == ["INCREMENT", "INCREMENT", "DECREMENT"]
    assert [(prev["count"], nxt["count"]) for prev, _, nxt in history] == [(0, 1), (1, 2), (2, 1)]

    devtools.clear()
    assert devtools.get_history() == []


def test_debounce_dispatches_last_action(root_reducer):
    queries = create_reducer("", ("SEARCH", lambda state, action: action["query"]))
    store = create_store(
        combine_reducers({"query": queries, "count": root_reducer.reducers["count"]}),
        apply_middleware(DebounceMiddleware(interval=0.2, action_types=["SEARCH"])),
    )
    settled = threading.Event()
    store.subscribe(lambda: settled.set() if store.get_state()["query"] == "red" else None)

    assert store.dispatch({"type": "SEARCH", "query": "r"}) is None
    store.dispatch({"type": "SEARCH", "query": "re"})
    store.dispatch({"type": "SEARCH", "query": "red"})
    # 不在 action_types 內的 action 立即通過
    store.dispatch({"type": "INCREMENT"})
    assert store.get_state()["count"] == 1
    assert store.get_state()["query"] == ""

    assert settled.wait(2)
    assert store.get_state()["query"] == "red"


def test_debounce_teardown_cancels_pending(store):
    debounce = DebounceMiddleware(interval=0.05)
    store.apply_middleware(debounce)

    store.dispatch({"type": "INCREMENT"})
    assert debounce.pending() == ["INCREMENT"]
    store.teardown()
    time.sleep(0.15)

    assert debounce.pending() == []
    assert store.get_state()["count"] == 0


def test_debounce_failure_is_reported():
    def fragile(state=None, action=None):
        if get_action_type(action) == "SEARCH":
            raise ValueError("search failed")
        return 0 if state is None else state

    store = create_store(fragile, apply_middleware(DebounceMiddleware(interval=0.05)))
    reported = []
    handled = threading.Event()

    def on_error(error):
        reported.append(error)
        handled.set()

    global_error_handler.register_handler(on_error)
    try:
        store.dispatch({"type": "SEARCH"})
        assert handled.wait(2)
    finally:
        global_error_handler.unregister_handler(on_error)

    assert reported[0].message == "search failed"
    assert reported[0].details["original_error"] == "ValueError"
    assert store.get_state() == 0


def test_awaitable_middleware_dispatches_result(root_reducer):
    async def load():
        await asyncio.sleep(0)
        return Action("INCREMENT")

    async def main():
        store = create_store(root_reducer, apply_middleware(AwaitableMiddleware()))
        task = store.dispatch(load())
        await task
        await asyncio.sleep(0)
        return store.get_state()

    assert asyncio.run(main())["count"] == 1


def test_awaitable_failure_is_reported(root_reducer):
    async def failing():
        raise OSError("offline")

    reported = []

    async def main():
        store = create_store(root_reducer, apply_middleware(AwaitableMiddleware()))
        task = store.dispatch(failing())
        with pytest.raises(OSError):
            await task
        await asyncio.sleep(0)
        return store.get_state()

    global_error_handler.register_handler(reported.append)
    try:
        state = asyncio.run(main())
    finally:
        global_error_handler.unregister_handler(reported.append)

    assert state["count"] == 0
    assert [error.details["original_error"] for error in reported] == ["OSError"]


def test_compose():
    add_one = lambda x: x + 1
    double = lambda x: x * 2

    assert compose()(3) == 3
    assert compose(add_one)(3) == 4
    assert compose(add_one, double)(3) == 7
    assert compose(double, add_one, double)(3) == 14
