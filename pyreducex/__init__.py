"""
PyReduceX：可預測的狀態容器。

store + reducer + dispatch + 訂閱 + 中介軟體鏈，
支援 thunk 形式的延遲計算與 reducer 生成工具。
"""

from .errors import (
    PyReduceXError, ActionError, StoreError,
    ReentrantDispatchError, ConfigurationError, ErrorHandler, global_error_handler,
    handle_error
)
from .actions import Action, create_action, make_action_creator, get_action_type, is_action, init_store, update_reducer
from .thunk import Thunk, thunk, is_thunk
from .middleware import (
    BaseMiddleware, ThunkMiddleware, AwaitableMiddleware, LoggerMiddleware,
    ErrorMiddleware, DevToolsMiddleware, DebounceMiddleware, global_error,
    apply_middleware, compose
)
from .reducers import create_reducer, on, combine_reducers, create_filtered_reducer, ReducerManager
from .store import Store, create_store, StoreModule
from .store_selectors import create_selector
from .immutable_utils import to_immutable, to_dict, to_pydantic
from .map_utils import update_object, update_in, update_item_in_array

__version__ = "0.3.0"

# 匯出所有公開 API
__all__ = [
    # Errors
    "PyReduceXError", "ActionError", "StoreError",
    "ReentrantDispatchError", "ConfigurationError", "ErrorHandler", "global_error_handler",
    "handle_error",

    # Actions
    "Action", "create_action", "make_action_creator", "get_action_type", "is_action",
    "init_store", "update_reducer",

    # Thunks
    "Thunk", "thunk", "is_thunk",

    # Middleware
    "BaseMiddleware", "ThunkMiddleware", "AwaitableMiddleware", "LoggerMiddleware",
    "ErrorMiddleware", "DevToolsMiddleware", "DebounceMiddleware", "global_error",
    "apply_middleware", "compose",

    # Reducers
    "create_reducer", "on", "combine_reducers", "create_filtered_reducer", "ReducerManager",

    # Store
    "Store", "create_store", "StoreModule",

    # Selectors
    "create_selector",

    # Immutable Utils
    "to_immutable", "to_dict", "to_pydantic",

    # Map Utils
    "update_object", "update_in", "update_item_in_array",
]
