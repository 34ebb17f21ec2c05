import logging
from typing import Any, Callable, Dict, Mapping, Optional

from immutables import Map

from .actions import get_action_type
from .errors import ConfigurationError
from .types import S, Predicate, Reducer

logger = logging.getLogger(__name__)


def create_reducer(initial_state: S, *handlers) -> Reducer[S]:
    """
    創建一個 reducer 函式，用於處理狀態變更。

    Args:
        initial_state: 初始狀態，reducer 以 None 狀態被調用時返回。
        *handlers: 一系列 (action_type, handler_fn) 元組或使用 on 函式創建的處理器。

    Returns:
        一個 reducer 函式，根據 action 的類型執行對應的處理邏輯。
    """
    action_handlers = {}  # 儲存 action 類型與處理函式的對應關係

    for handler in handlers:
        if isinstance(handler, tuple) and len(handler) == 2:
            # 如果 handler 是元組，則解構為 action 類型與處理函式
            action_type, handler_fn = handler
            action_handlers[_type_key(action_type)] = handler_fn
        elif isinstance(handler, Mapping):
            # 如果 handler 是字典，則直接更新到 action_handlers
            action_handlers.update(handler)
        else:
            raise ConfigurationError(
                f"Unsupported reducer handler: {handler!r}",
                component="create_reducer",
            )

    def reducer(state: Optional[S] = None, action: Any = None) -> S:
        """
        Reducer 函式，根據 action 處理狀態變更。

        Args:
            state: 當前狀態，None 表示初始化調用。
            action: 要處理的 action。

        Returns:
            新的狀態，如果沒有對應的處理器則返回原狀態。
        """
        if state is None:
            state = initial_state
        if action is None:
            return state

        handler = action_handlers.get(get_action_type(action))
        if handler:
            return handler(state, action)
        return state

    # 設置 reducer 的初始狀態和處理器映射
    reducer.initial_state = initial_state
    reducer.handlers = action_handlers

    return reducer


def on(action_creator_or_type, handler):
    """
    創建一個 action 類型與處理函式的映射。

    Args:
        action_creator_or_type: Action 創建器函式或 Action 類型字串。
        handler: 處理該 Action 的函式，接收 (state, action) 並返回新狀態。

    Returns:
        一個包含 {action_type: handler} 的字典。
    """
    return {_type_key(action_creator_or_type): handler}


def _type_key(action_creator_or_type) -> str:
    if callable(action_creator_or_type) and hasattr(action_creator_or_type, 'type'):
        # 如果是 action 創建器函式，則提取其類型
        return action_creator_or_type.type
    return str(action_creator_or_type)


def create_filtered_reducer(reducer: Reducer[S], predicate: Predicate) -> Reducer[S]:
    """
    包裝 reducer，只在 predicate(action) 成立或初始化調用時執行。

    適合讓同一個 reducer 服務多個命名空間的切片，而不需要在 reducer
    內部特別處理 action 類型。

    Args:
        reducer: 被包裝的 reducer
        predicate: 接收 action 並返回是否執行的函數

    Returns:
        過濾後的 reducer

    範例:
        >>> counter_a = create_filtered_reducer(counter, lambda a: get_action_type(a).endswith("_A"))
    """
    def filtered_reducer(state: Optional[S] = None, action: Any = None) -> S:
        is_initialization_call = state is None
        if is_initialization_call or predicate(action):
            return reducer(state, action)
        return state

    if hasattr(reducer, 'initial_state'):
        filtered_reducer.initial_state = reducer.initial_state
    return filtered_reducer


def combine_reducers(reducers: Mapping[str, Reducer[Any]]) -> Reducer[Mapping[str, Any]]:
    """
    將多個切片 reducer 合併為一個根 reducer。

    每個切片 reducer 只看到自己的子狀態與完整的 action。
    若沒有任何切片變更（以 is 判斷），返回原本的根狀態引用。
    根狀態可以是 dict 或 immutables.Map，新狀態沿用相同的映射類型。

    Args:
        reducers: 切片鍵名到 reducer 的映射。

    Returns:
        根 reducer。
    """
    if not reducers:
        raise ConfigurationError(
            "combine_reducers requires at least one slice reducer",
            component="combine_reducers",
        )
    for key, slice_reducer in reducers.items():
        if not callable(slice_reducer):
            raise ConfigurationError(
                f"Reducer for slice '{key}' is not callable",
                component="combine_reducers",
                config_key=key,
            )

    # 複製一份，之後對傳入映射的修改不影響已組合的 reducer
    final_reducers = dict(reducers)
    warned_keys = set()

    def combination(state: Optional[Mapping[str, Any]] = None, action: Any = None) -> Mapping[str, Any]:
        if state is None:
            state = {}
        elif not isinstance(state, Mapping):
            logger.warning(
                "Expected the previous state to be a mapping, got %s; starting from an empty state",
                type(state).__name__,
            )
            state = {}

        unexpected = [k for k in state if k not in final_reducers]
        for key in unexpected:
            if key not in warned_keys:
                warned_keys.add(key)
                logger.warning("Unexpected key '%s' found in state; it will be dropped", key)

        has_changed = bool(unexpected)
        next_slices = {}
        for key, slice_reducer in final_reducers.items():
            prev_slice = state.get(key)
            next_slice = slice_reducer(prev_slice, action)
            next_slices[key] = next_slice
            if key not in state or next_slice is not prev_slice:
                has_changed = True

        if not has_changed:
            return state
        if isinstance(state, Map):
            return Map(next_slices)
        return next_slices

    combination.reducers = final_reducers
    return combination


class ReducerManager:
    """
    管理 store 背後的所有切片 reducers，支援特性模組的動態註冊與卸載。

    Attributes:
        _feature_reducers: 儲存每個功能模組的 reducer。
    """
    def __init__(self, reducers: Optional[Dict[str, Reducer[Any]]] = None):
        self._feature_reducers: Dict[str, Reducer[Any]] = {}
        if reducers:
            self.add_reducers(reducers)

    def add_reducer(self, feature_key: str, reducer: Reducer[Any]) -> None:
        """
        添加一個 reducer 到指定的功能模組。

        Args:
            feature_key: 功能模組的鍵。
            reducer: 要添加的 reducer 函式。
        """
        if not callable(reducer):
            raise ConfigurationError(
                f"Reducer for feature '{feature_key}' is not callable",
                component="ReducerManager",
                config_key=feature_key,
            )
        self._feature_reducers[feature_key] = reducer

    def add_reducers(self, reducers: Dict[str, Reducer[Any]]) -> None:
        """批量添加 reducers。"""
        for key, r in reducers.items():
            self.add_reducer(key, r)

    def remove_reducer(self, feature_key: str) -> None:
        """
        移除指定功能模組的 reducer，不存在時不做任何事。

        Args:
            feature_key: 要移除的功能模組鍵。
        """
        self._feature_reducers.pop(feature_key, None)

    def get_reducers(self) -> Dict[str, Reducer[Any]]:
        """獲取當前所有 reducers 的副本。"""
        return self._feature_reducers.copy()

    def __contains__(self, feature_key: str) -> bool:
        return feature_key in self._feature_reducers

    def build(self) -> Callable[[Optional[Mapping[str, Any]], Any], Mapping[str, Any]]:
        """
        以當前註冊的 reducers 建立根 reducer。

        沒有任何 reducer 時返回一個空根狀態的 reducer。
        """
        if not self._feature_reducers:
            return _empty_root_reducer
        return combine_reducers(self._feature_reducers)


def _empty_root_reducer(state: Optional[Mapping[str, Any]] = None, action: Any = None) -> Mapping[str, Any]:
    # 沒有任何切片時，殘留的鍵與 combine_reducers 一樣被丟棄
    if isinstance(state, Mapping) and not state:
        return state
    return Map() if isinstance(state, Map) else {}
