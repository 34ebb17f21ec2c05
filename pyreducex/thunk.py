"""
Thunk：可被 dispatch 的延遲計算。

Thunk 包裝一個接收 (dispatch, get_state, extra_argument) 的函數，
ThunkMiddleware 會立即調用它而不是把它交給 reducer。
被包裝函數可以只宣告前一個或兩個參數，調用時會依其位置參數數量裁剪。
"""
import functools
import inspect
from typing import Any, Callable, Optional

from .types import DispatchFunction, GetState


def _positional_arity(fn: Callable[..., Any]) -> Optional[int]:
    """
    計算函數可接收的位置參數數量。

    Returns:
        位置參數數量；函數接受 *args 或無法取得簽名時返回 None
    """
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return None
    count = 0
    for param in params:
        if param.kind == inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


class Thunk:
    """
    表示一個延遲計算的 dispatch 輸入。

    屬性:
        fn: 被包裝的函數
        name: 用於日誌與除錯的名稱
    """
    __slots__ = ('fn', 'name', '_arity')

    def __init__(self, fn: Callable[..., Any], name: Optional[str] = None):
        if not callable(fn):
            raise TypeError(f"Thunk requires a callable, got {type(fn).__name__}")
        self.fn = fn
        self.name = name or getattr(fn, '__qualname__', repr(fn))
        self._arity = _positional_arity(fn)

    @property
    def type(self) -> str:
        # 讓日誌類中介軟體可以統一讀取 type
        return f"[Thunk] {self.name}"

    def __call__(self, dispatch: DispatchFunction, get_state: GetState, extra_argument: Any = None) -> Any:
        args = (dispatch, get_state, extra_argument)
        if self._arity is not None:
            args = args[:self._arity]
        return self.fn(*args)

    def __repr__(self):
        return f"Thunk({self.name})"


def is_thunk(obj: Any) -> bool:
    """判斷對象是否應被視為 thunk：Thunk 實例或普通可調用對象。"""
    return isinstance(obj, Thunk) or (callable(obj) and not isinstance(obj, type))


def as_thunk(obj: Any) -> Thunk:
    """將普通可調用對象包裝為 Thunk，已是 Thunk 時原樣返回。"""
    return obj if isinstance(obj, Thunk) else Thunk(obj)


def thunk(creator: Callable[..., Callable[..., Any]]) -> Callable[..., Thunk]:
    """
    裝飾器：將返回函數的 action 創建器改為返回 Thunk。

    用法:
        ```python
        @thunk
        def show_notification(text):
            def run(dispatch, get_state):
                dispatch(notify(text))
            return run

        store.dispatch(show_notification("You just logged in."))
        ```
    """
    @functools.wraps(creator)
    def wrapper(*args: Any, **kwargs: Any) -> Thunk:
        return Thunk(creator(*args, **kwargs), name=creator.__name__)
    return wrapper
