"""
PyReduceX 共用的類型定義。

集中定義 reducer、dispatch、middleware 與 store 之間傳遞的函數簽名，
讓各模組與 .pyi 存根共享同一套詞彙。
"""
from typing import Any, Callable, Optional, TypeVar, Protocol, runtime_checkable
from typing_extensions import TypedDict

S = TypeVar("S")  # 狀態類型
P = TypeVar("P")  # 負載類型
T = TypeVar("T")
R = TypeVar("R")

# 基本函數簽名
Reducer = Callable[[Optional[S], Any], S]
ActionHandler = Callable[[Any, Any], Any]
DispatchFunction = Callable[[Any], Any]
NextDispatch = Callable[[Any], Any]
GetState = Callable[[], Any]
Subscriber = Callable[[], None]
Unsubscribe = Callable[[], None]
Predicate = Callable[[Any], bool]
StateSelector = Callable[[Any], Any]

# 中介軟體：store -> (next_dispatch -> dispatch)
MiddlewareFunction = Callable[[NextDispatch], DispatchFunction]
MiddlewareFactory = Callable[[Any], MiddlewareFunction]

# Store 建構函數與增強器
StoreCreator = Callable[..., Any]
StoreEnhancer = Callable[[StoreCreator], StoreCreator]


class ActionContext(TypedDict, total=False):
    """中介軟體在一次 dispatch 生命週期內共享的上下文。"""
    action: Any
    prev_state: Any
    next_state: Any
    result: Any
    error: Optional[BaseException]


@runtime_checkable
class Middleware(Protocol):
    """物件型中介軟體需要提供的鉤子。"""

    def on_next(self, action: Any, prev_state: Any) -> None: ...

    def on_complete(self, next_state: Any, action: Any) -> None: ...

    def on_error(self, error: Exception, action: Any) -> None: ...
