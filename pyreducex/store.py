import asyncio
import inspect
import logging
import threading
from typing import Any, Dict, Generic, List, Mapping, Optional

from reactivex import Observable, operators as ops
from reactivex.subject import Subject

from .actions import get_action_type, init_store, update_reducer
from .errors import ActionError, ConfigurationError, ReentrantDispatchError, StoreError
from .reducers import ReducerManager
from .thunk import is_thunk
from .types import S, DispatchFunction, Reducer, StateSelector, StoreEnhancer, Subscriber, Unsubscribe

logger = logging.getLogger(__name__)


class Store(Generic[S]):
    """
    狀態容器，持有唯一的當前狀態並通知訂閱者狀態變更。

    狀態只能透過 dispatch 改變：action 依序經過中介軟體鏈，
    再由根 reducer 計算新狀態，新狀態一次性替換後同步通知所有訂閱者。
    Store 不是單例，測試或多個子系統可以各自建立獨立的 store。
    """

    def __init__(self, reducer: Reducer[S], initial_state: Optional[S] = None):
        """
        建立 Store。

        Args:
            reducer: 根 reducer
            initial_state: 可選的初始狀態；reducer 會以 init_store action
                處理它，以便補上缺少的切片預設值
        """
        if not callable(reducer):
            raise ConfigurationError(
                f"Expected the root reducer to be callable, got {type(reducer).__name__}",
                component="Store",
                config_key="reducer",
            )
        # 根 reducer 與可選的特性 reducer 管理器
        self._reducer = reducer
        self._reducer_manager: Optional[ReducerManager] = None
        # 訂閱者列表，按註冊順序通知
        self._subscribers: List[Subscriber] = []
        # 狀態流（Subject），發送 (old_state, new_state)
        self._state_subject = Subject()
        # 中介軟體列表
        self._middleware: List[Any] = []
        # reducer 執行中標記，用於拒絕重入的 dispatch
        self._is_reducing = False
        # 串行化 reduce / 替換 / 通知，計時器執行緒的 dispatch 會在此等待
        self._lock = threading.RLock()
        # 構建中介軟體鏈後的 dispatch 方法
        self._dispatch_chain: DispatchFunction = self._dispatch_core

        # 初始化狀態，不通知訂閱者
        self._state = self._reduce(initial_state, init_store())

    # ———— 核心 ————
    def _reduce(self, state: Optional[S], action: Any) -> S:
        if self._is_reducing:
            raise ReentrantDispatchError(get_action_type(action))
        self._is_reducing = True
        try:
            return self._reducer(state, action)
        finally:
            self._is_reducing = False

    def _dispatch_core(self, action: Any) -> Any:
        """
        核心的 dispatch 方法：執行根 reducer、替換狀態並通知訂閱者。

        Args:
            action: 要分發的 Action。

        Returns:
            傳入的 Action。
        """
        if is_thunk(action) or asyncio.iscoroutine(action):
            raise ActionError(
                "Only plain actions can reach the reducer; "
                "register ThunkMiddleware or AwaitableMiddleware to dispatch deferred computations",
                action_type=get_action_type(action),
            )

        with self._lock:
            # reducer 拋出異常時狀態保持不變
            self._commit(self._reduce(self._state, action))
        return action

    def _commit(self, new_state: S) -> None:
        old_state = self._state
        self._state = new_state
        # 狀態流先於訂閱者發送，訂閱者內的 dispatch 會排在本次變更之後
        self._state_subject.on_next((old_state, new_state))

        # 使用快照，通知期間的訂閱變更於下次 dispatch 生效
        for subscriber in list(self._subscribers):
            subscriber()

    def _apply_middleware_chain(self) -> DispatchFunction:
        """
        構建中介軟體鏈，將中介軟體按順序包裹在核心 dispatch 外層。

        Returns:
            包裹後的 dispatch 方法。
        """
        # 從最後一個中介軟體開始包裹，第一個註冊的中介軟體最先執行
        dispatch = self._dispatch_core
        for mw in reversed(self._middleware):
            if callable(mw):
                dispatch = mw(self)(dispatch)
            else:
                # 只有鉤子的物件型中介軟體
                dispatch = self._wrap_obj_middleware(mw, dispatch)
        return dispatch

    def _wrap_obj_middleware(self, mw: Any, next_dispatch: DispatchFunction) -> DispatchFunction:
        """
        包裹只實現 on_next / on_complete / on_error 的物件型中介軟體。

        Args:
            mw: 中介軟體物件
            next_dispatch: 下一層的 dispatch 方法

        Returns:
            包裹後的 dispatch 方法
        """
        def dispatch(action: Any) -> Any:
            prev_state = self._state
            if hasattr(mw, "on_next"):
                mw.on_next(action, prev_state)
            try:
                result = next_dispatch(action)
            except Exception as err:
                if hasattr(mw, "on_error"):
                    mw.on_error(err, action)
                raise
            if hasattr(mw, "on_complete"):
                mw.on_complete(self._state, action)
            return result

        return dispatch

    # ———— 公開 API ————
    def dispatch(self, action: Any) -> Any:
        """
        分發一個動作，觸發狀態更新。

        Args:
            action: Action、含 "type" 鍵的映射，或中介軟體支援的其他輸入
                (thunk、coroutine)

        Returns:
            傳入的 Action，或中介軟體的返回值
        """
        return self._dispatch_chain(action)

    def get_state(self) -> S:
        """
        獲取當前狀態的快照，調用方應視為唯讀。

        Returns:
            當前狀態。
        """
        return self._state

    @property
    def state(self) -> S:
        """當前狀態，等同 get_state()。"""
        return self._state

    def subscribe(self, subscriber: Subscriber) -> Unsubscribe:
        """
        註冊狀態變更監聽器，每次 dispatch 成功後以無參數調用。

        Args:
            subscriber: 監聽回調，需要時自行調用 get_state()

        Returns:
            取消訂閱的函數，可重複調用
        """
        if not callable(subscriber):
            raise ConfigurationError(
                f"Expected the subscriber to be callable, got {type(subscriber).__name__}",
                component="Store",
                config_key="subscriber",
            )
        self._subscribers.append(subscriber)
        subscribed = True

        def unsubscribe() -> None:
            nonlocal subscribed
            if not subscribed:
                return
            subscribed = False
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def apply_middleware(self, *middlewares: Any) -> "Store[S]":
        """
        註冊一個或多個中介軟體，並重建 dispatch 鏈。

        Args:
            *middlewares: 要註冊的中介軟體，可以是類、實例或工廠函數。
        """
        # 接受類和實例，如果是類則直接實例化
        for m in middlewares:
            inst = m() if inspect.isclass(m) else m
            if not callable(inst) and not hasattr(inst, "on_next"):
                raise ConfigurationError(
                    f"Unsupported middleware: {inst!r}",
                    component="Store",
                    config_key="middleware",
                )
            self._middleware.append(inst)
        self._dispatch_chain = self._apply_middleware_chain()
        return self

    def replace_reducer(self, reducer: Reducer[S]) -> None:
        """
        替換根 reducer，並以 update_reducer action 重新計算狀態。

        Args:
            reducer: 新的根 reducer
        """
        if not callable(reducer):
            raise ConfigurationError(
                f"Expected the root reducer to be callable, got {type(reducer).__name__}",
                component="Store",
                config_key="reducer",
            )
        # 外部替換的根 reducer 不再對應已登記的切片
        self._reducer_manager = None
        self._install_reducer(reducer)

    def _install_reducer(self, reducer: Reducer[S]) -> None:
        with self._lock:
            previous = self._reducer
            self._reducer = reducer
            try:
                new_state = self._reduce(self._state, update_reducer())
            except Exception:
                # 新 reducer 無法處理當前狀態時保留原本的 reducer
                self._reducer = previous
                raise
            self._commit(new_state)

    def select(self, selector: Optional[StateSelector] = None) -> Observable:
        """
        選擇狀態的一部分進行觀察。

        Args:
            selector: 一個函數，接收整個狀態並返回希望觀察的部分；
                省略時觀察整個狀態。

        Returns:
            一個可觀察對象，發送 (舊選擇值, 新選擇值)，只在新值改變時發出。
        """
        if selector is None:
            selector = lambda state: state

        return self._state_subject.pipe(
            # 將元組 (old_state, new_state) 轉換為 (selector(old_state), selector(new_state))
            ops.map(lambda state_tuple: (selector(state_tuple[0]), selector(state_tuple[1]))),
            # 只有當新狀態變化時才發出
            ops.distinct_until_changed(lambda x: x[1]),
        )

    # ———— 特性模組 ————
    def _ensure_reducer_manager(self, operation: str) -> ReducerManager:
        if self._reducer_manager is None:
            slices = getattr(self._reducer, "reducers", None)
            if slices is None and not _is_empty_root(self._state):
                raise StoreError(
                    "The root reducer was not built from slice reducers; "
                    "use register_root before registering features",
                    operation=operation,
                    state_type=type(self._state).__name__,
                )
            # 從 combine_reducers 建立的根 reducer 可以直接沿用其切片
            self._reducer_manager = ReducerManager(slices)
        return self._reducer_manager

    def register_root(self, root_reducers: Dict[str, Reducer[Any]]) -> "Store[S]":
        """
        以切片 reducers 取代整個根 reducer。

        Args:
            root_reducers: 特性鍵名到 reducer 的映射字典。
        """
        manager = ReducerManager(root_reducers)
        self._reducer_manager = None
        self._install_reducer(manager.build())
        self._reducer_manager = manager
        return self

    def register_feature(self, feature_key: str, reducer: Reducer[Any]) -> "Store[S]":
        """
        註冊一個特性模組的 reducer，其初始狀態會被補進狀態樹。

        Args:
            feature_key: 特性模組的鍵名。
            reducer: 特性模組的 reducer。
        """
        manager = self._ensure_reducer_manager("register_feature")
        previous = manager.get_reducers().get(feature_key)
        manager.add_reducer(feature_key, reducer)
        root = manager.build()
        try:
            self._install_reducer(root)
        except Exception:
            if self._reducer is not root:
                if previous is None:
                    manager.remove_reducer(feature_key)
                else:
                    manager.add_reducer(feature_key, previous)
            raise
        return self

    def unregister_feature(self, feature_key: str) -> "Store[S]":
        """
        卸載一個特性模組，並從狀態樹移除其切片。

        Args:
            feature_key: 特性模組的鍵名。
        """
        manager = self._ensure_reducer_manager("unregister_feature")
        if feature_key not in manager:
            raise StoreError(
                f"Feature '{feature_key}' is not registered",
                operation="unregister_feature",
            )
        removed = manager.get_reducers()[feature_key]
        manager.remove_reducer(feature_key)
        root = manager.build()
        try:
            # 組合後的根 reducer 會丟棄已卸載的切片
            self._install_reducer(root)
        except Exception:
            if self._reducer is not root:
                manager.add_reducer(feature_key, removed)
            raise
        return self

    # ———— 生命週期 ————
    def teardown(self) -> None:
        """清理中介軟體資源、完成狀態流並移除所有訂閱者。"""
        for mw in self._middleware:
            if hasattr(mw, "teardown"):
                mw.teardown()
        self._state_subject.on_completed()
        self._subscribers.clear()
        logger.debug("store torn down")

    def __enter__(self) -> "Store[S]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.teardown()


def _is_empty_root(state: Any) -> bool:
    return state is None or (isinstance(state, Mapping) and not state)


def create_store(
    reducer: Reducer[S],
    initial_state: Optional[S] = None,
    enhancer: Optional[StoreEnhancer] = None,
) -> Store[S]:
    """
    創建一個新的 Store 實例。

    Args:
        reducer: 根 reducer。
        initial_state: 可選的初始狀態。
        enhancer: 可選的 store 增強器，例如 apply_middleware(...) 的返回值。
            與 Redux 相同，省略 initial_state 時可以直接把增強器放在第二個參數。

    Returns:
        Store: 新創建的 Store 實例。
    """
    if enhancer is None and callable(initial_state):
        enhancer, initial_state = initial_state, None

    if enhancer is not None:
        if not callable(enhancer):
            raise ConfigurationError(
                f"Expected the enhancer to be callable, got {type(enhancer).__name__}",
                component="create_store",
                config_key="enhancer",
            )
        return enhancer(create_store)(reducer, initial_state)

    return Store(reducer, initial_state)


class StoreModule:
    """
    用於配置 Store 的工具類，類似於 NgRx 的 StoreModule。
    """

    @staticmethod
    def register_root(reducers: Dict[str, Reducer[Any]], store: Optional[Store[Any]] = None) -> Store[Any]:
        """
        註冊應用的根級 reducers。

        Args:
            reducers: 特性鍵名到 reducer 的映射字典。
            store: 可選的 Store 實例，如果不提供則創建新實例。

        Returns:
            配置好的 Store 實例。
        """
        if store is None:
            manager = ReducerManager(reducers)
            store = create_store(manager.build())
            store._reducer_manager = manager
            return store

        return store.register_root(reducers)

    @staticmethod
    def register_feature(feature_key: str, reducer: Reducer[Any], store: Store[Any]) -> Store[Any]:
        """註冊一個特性模組的 reducer。"""
        return store.register_feature(feature_key, reducer)

    @staticmethod
    def unregister_feature(feature_key: str, store: Store[Any]) -> Store[Any]:
        """卸載一個特性模組。"""
        return store.unregister_feature(feature_key)
