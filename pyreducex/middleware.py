"""
基於 PyReduceX 的中介軟體定義模組。

此模組提供各種中介軟體，用於在動作分發過程中插入自定義邏輯，
實現 thunk、非同步 action、日誌記錄、錯誤處理與防抖等功能。

每個中介軟體都是一個工廠：``mw(store)(next_dispatch) -> dispatch``。
中介軟體按註冊順序由外而內執行，每一層決定是否調用 next_dispatch。
"""

import asyncio
import contextlib
import logging
import threading
import time
from functools import reduce
from typing import Any, Callable, Dict, Generator, Iterable, List, Optional, Tuple

from .actions import create_action, get_action_type, is_action
from .errors import global_error_handler
from .immutable_utils import to_dict
from .thunk import as_thunk, is_thunk
from .types import (
    ActionContext, DispatchFunction, MiddlewareFunction, NextDispatch, StoreEnhancer
)

logger = logging.getLogger(__name__)


def _describe(action: Any) -> str:
    action_type = get_action_type(action)
    return action_type if action_type is not None else repr(action)


# ———— Base Middleware ————
class BaseMiddleware:
    """
    基礎中介類，定義所有中介可能實現的鉤子。

    子類只需覆寫 on_next / on_complete / on_error 即可介入分發流程，
    預設的 __call__ 會以 action_context 包裹下一層 dispatch。
    """

    def __call__(self, store: Any) -> MiddlewareFunction:
        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def dispatch(action: Any) -> Any:
                with self.action_context(action, store.get_state()) as context:
                    result = next_dispatch(action)
                    context['result'] = result
                    context['next_state'] = store.get_state()
                    return result
            return dispatch
        return middleware

    def on_next(self, action: Any, prev_state: Any) -> None:
        """
        在 action 發送給 reducer 之前調用。

        Args:
            action: 正在 dispatch 的 Action
            prev_state: dispatch 之前的 store 狀態
        """
        pass

    def on_complete(self, next_state: Any, action: Any) -> None:
        """
        在 reducer 處理完 action 之後調用。

        Args:
            next_state: dispatch 之後的最新 store 狀態
            action: 剛剛 dispatch 的 Action
        """
        pass

    def on_error(self, error: Exception, action: Any) -> None:
        """
        如果 dispatch 過程中拋出異常，則調用此鉤子。

        Args:
            error: 拋出的異常
            action: 導致異常的 Action
        """
        pass

    def teardown(self) -> None:
        """當 Store 清理資源時調用，用於清理中間件持有的資源。"""
        pass

    @contextlib.contextmanager
    def action_context(self, action: Any, prev_state: Any) -> Generator[ActionContext, None, None]:
        """
        以上下文管理器的形式提供 action 分發的生命週期。

        Args:
            action: 要分發的 Action
            prev_state: 分發前的狀態

        Yields:
            ActionContext: 上下文數據，dispatch 結束後由調用方填入 next_state
        """
        context: ActionContext = {
            'action': action,
            'prev_state': prev_state,
            'next_state': None,
            'result': None,
            'error': None,
        }

        self.on_next(action, prev_state)
        try:
            yield context
        except Exception as err:
            context['error'] = err
            self.on_error(err, action)
            raise
        self.on_complete(context['next_state'], action)


# ———— ThunkMiddleware ————
class ThunkMiddleware(BaseMiddleware):
    """
    支援 dispatch 函數 (thunk)，可以在 thunk 內執行非同步邏輯或多次 dispatch。

    Thunk 會立即以 (dispatch, get_state, extra_argument) 調用，
    其返回值即為 dispatch 的返回值，不會傳給 reducer。
    thunk 內的 dispatch 會重新走完整條中介軟體鏈。

    範例:
        ```python
        def fetch_items(url):
            def run(dispatch, get_state):
                dispatch(items_is_loading(True))
                try:
                    items = client.get(url)
                except OSError:
                    dispatch(items_has_errored(True))
                    return None
                dispatch(items_is_loading(False))
                dispatch(items_fetch_data_success(items))
                return items
            return run

        store.dispatch(fetch_items("/items"))
        ```
    """
    def __init__(self, extra_argument: Any = None):
        """
        初始化 ThunkMiddleware。

        Args:
            extra_argument: 傳給 thunk 的第三個參數，例如 API 客戶端
        """
        self.extra_argument = extra_argument

    def __call__(self, store: Any) -> MiddlewareFunction:
        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def dispatch(action: Any) -> Any:
                if is_thunk(action):
                    return as_thunk(action)(store.dispatch, store.get_state, self.extra_argument)
                return next_dispatch(action)
            return dispatch
        return middleware


# ———— AwaitableMiddleware ————
class AwaitableMiddleware(BaseMiddleware):
    """
    支援 dispatch coroutine/awaitable，完成後自動 dispatch 返回值。

    必須在執行中的事件迴圈內 dispatch coroutine。返回值為 None 時不 dispatch；
    失敗的 awaitable 交給 global_error_handler，不會跨越 store 邊界拋出。

    範例:
        ```python
        async def fetch_data():
            await asyncio.sleep(1)
            return data_loaded({"result": "success"})

        task = store.dispatch(fetch_data())  # 完成後自動 dispatch data_loaded
        ```
    """
    def __call__(self, store: Any) -> MiddlewareFunction:
        def on_done(fut: "asyncio.Future[Any]") -> None:
            if fut.cancelled():
                return
            err = fut.exception()
            if err is not None:
                global_error_handler.handle(err)
                return
            result = fut.result()
            if result is not None:
                store.dispatch(result)

        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def dispatch(action: Any) -> Any:
                if asyncio.iscoroutine(action):
                    task = asyncio.get_running_loop().create_task(action)
                elif asyncio.isfuture(action):
                    task = action
                else:
                    return next_dispatch(action)
                task.add_done_callback(on_done)
                return task
            return dispatch
        return middleware


# ———— LoggerMiddleware ————
class LoggerMiddleware(BaseMiddleware):
    """
    日誌中介，記錄每個 action 發送前和發送後的 state。

    使用場景:
    - 偵錯時需要觀察每次 state 的變化。
    - 確保 action 的執行順序正確。
    """
    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.DEBUG):
        """
        初始化 LoggerMiddleware。

        Args:
            logger: 使用的 logger，預設為本模組的 logger
            level: 一般記錄使用的日誌等級
        """
        self.logger = logger or logging.getLogger(__name__)
        self.level = level

    def on_next(self, action: Any, prev_state: Any) -> None:
        if not self.logger.isEnabledFor(self.level):
            return
        self.logger.log(self.level, "dispatching %s", _describe(action))
        self.logger.log(self.level, "state before %s: %s", _describe(action), to_dict(prev_state))

    def on_complete(self, next_state: Any, action: Any) -> None:
        if not self.logger.isEnabledFor(self.level):
            return
        self.logger.log(self.level, "state after %s: %s", _describe(action), to_dict(next_state))

    def on_error(self, error: Exception, action: Any) -> None:
        self.logger.error("error in %s: %s", _describe(action), error, exc_info=error)


# ———— ErrorMiddleware ————
global_error = create_action("[Error] GlobalError", lambda info: info)


class ErrorMiddleware(BaseMiddleware):
    """
    捕獲 dispatch 過程中的異常，dispatch 全域錯誤 Action 並交給 global_error_handler，
    然後重新拋出原異常。

    使用場景:
    - 當需要把錯誤同時記錄到狀態樹（例如顯示錯誤訊息）與日誌時。
    """
    def __init__(self):
        self.store = None
        self._reporting = False

    def __call__(self, store: Any) -> MiddlewareFunction:
        self.store = store
        return super().__call__(store)

    def on_error(self, error: Exception, action: Any) -> None:
        global_error_handler.handle(error)
        # 錯誤 action 本身失敗時不再遞迴上報
        if self._reporting or self.store is None:
            return
        error_info = {
            "error": str(error),
            "error_type": error.__class__.__name__,
            "action": _describe(action),
            "timestamp": time.time(),
        }
        self._reporting = True
        try:
            self.store.dispatch(global_error(error_info))
        except Exception as report_err:
            logger.warning("failed to dispatch %s: %s", global_error.type, report_err)
        finally:
            self._reporting = False


# ———— DevToolsMiddleware ————
class DevToolsMiddleware(BaseMiddleware):
    """
    記錄每次 action 與 state 快照，支援時間旅行調試。

    只記錄到達 reducer 的普通 action，thunk 與 coroutine 不會出現在歷史中。
    """
    def __init__(self) -> None:
        self.history: List[Tuple[Any, Any, Any]] = []
        self._pending: List[Any] = []

    def on_next(self, action: Any, prev_state: Any) -> None:
        # 巢狀 dispatch（例如 thunk 內部）需要各自的前置狀態
        self._pending.append(prev_state)

    def on_complete(self, next_state: Any, action: Any) -> None:
        prev_state = self._pending.pop()
        if is_action(action):
            self.history.append((prev_state, action, next_state))

    def on_error(self, error: Exception, action: Any) -> None:
        self._pending.pop()

    def get_history(self) -> List[Tuple[Any, Any, Any]]:
        """
        返回整個歷史快照列表。

        Returns:
            歷史快照列表，每項為 (prev_state, action, next_state)
        """
        return list(self.history)

    def clear(self) -> None:
        self.history.clear()


# ———— DebounceMiddleware ————
class DebounceMiddleware(BaseMiddleware):
    """
    對同一 action type 做防抖，interval 秒內只 dispatch 最後一條。

    被延遲的 action 在計時器執行緒上送往下一層；dispatch 本身返回 None。

    使用場景:
    - 當需要限制高頻率的 action，例如用戶快速輸入的搜尋字串。
    """
    def __init__(self, interval: float = 0.3, action_types: Optional[Iterable[str]] = None) -> None:
        """
        初始化 DebounceMiddleware。

        Args:
            interval: 防抖間隔，單位秒，預設 0.3 秒
            action_types: 需要防抖的 action 類型，None 表示全部普通 action
        """
        self.interval = interval
        self.action_types = set(action_types) if action_types is not None else None
        self._timers: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def _should_debounce(self, action: Any) -> bool:
        if not is_action(action):
            return False
        return self.action_types is None or get_action_type(action) in self.action_types

    def __call__(self, store: Any) -> MiddlewareFunction:
        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def fire(key: str, timer_ref: List[threading.Timer], action: Any) -> None:
                with self._lock:
                    # 已被取代的計時器直接忽略
                    if self._timers.get(key) is not timer_ref[0]:
                        return
                    del self._timers[key]
                try:
                    next_dispatch(action)
                except Exception as err:
                    # 計時器執行緒上沒有呼叫方可以接收異常
                    global_error_handler.handle(err)

            def dispatch(action: Any) -> Any:
                if not self._should_debounce(action):
                    return next_dispatch(action)
                key = get_action_type(action)
                timer_ref: List[threading.Timer] = []
                timer = threading.Timer(self.interval, fire, args=(key, timer_ref, action))
                timer.daemon = True
                timer_ref.append(timer)
                with self._lock:
                    # 取消上一次定時
                    previous = self._timers.get(key)
                    if previous is not None:
                        previous.cancel()
                    self._timers[key] = timer
                timer.start()
                return None
            return dispatch
        return middleware

    def pending(self) -> List[str]:
        """返回仍在等待的 action 類型。"""
        with self._lock:
            return list(self._timers)

    def teardown(self) -> None:
        """清理所有計時器。"""
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()


# ———— 組合工具 ————
def compose(*funcs: Callable[[Any], Any]) -> Callable[[Any], Any]:
    """
    由右至左組合單參數函數：compose(f, g)(x) == f(g(x))。

    沒有函數時返回恆等函數。
    """
    if not funcs:
        return lambda arg: arg
    if len(funcs) == 1:
        return funcs[0]
    return reduce(lambda f, g: lambda arg: f(g(arg)), funcs)


def apply_middleware(*middlewares: Any) -> StoreEnhancer:
    """
    建立一個 store 增強器，在 store 建立後依序註冊中介軟體。

    用法:
        ```python
        store = create_store(root_reducer, None, apply_middleware(ThunkMiddleware(), LoggerMiddleware()))
        ```

    Args:
        *middlewares: 中介軟體實例、類或工廠函數

    Returns:
        store 增強器
    """
    def enhancer(create_store: Callable[..., Any]) -> Callable[..., Any]:
        def create(reducer: Any, initial_state: Any = None) -> Any:
            store = create_store(reducer, initial_state)
            store.apply_middleware(*middlewares)
            return store
        return create
    return enhancer
