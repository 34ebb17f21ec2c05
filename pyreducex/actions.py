"""
基於 PyReduceX 的 Action 定義模組。

此模組提供 Action 類別以及創建 Action 的功能。
Actions 是描述狀態變更意圖的不可變對象：一個必填的 type 標籤，
加上任意的負載欄位。普通的 dict（含 "type" 鍵）同樣被視為 Action。
"""
from typing import Any, Callable, Dict, Generic, Iterator, Mapping, Optional, Union, overload

from immutables import Map

from .types import P


class Action(Generic[P]):
    """
    表示一個有類型和可選負載的動作。

    泛型參數:
        P: 負載的類型

    屬性:
        type: 動作的類型字符串
        payload: 動作的負載數據（可選）

    Action 也可以像唯讀映射一樣讀取：action["type"] 返回類型，
    其他鍵則從映射型負載中讀取。
    """
    __slots__ = ('type', 'payload')

    def __init__(self, type: str, payload: Optional[P] = None):
        super().__setattr__('type', type)
        super().__setattr__('payload', payload)

    def __setattr__(self, name, value):
        raise AttributeError(f"Cannot modify immutable instance attribute '{name}'")

    def __delattr__(self, name):
        raise AttributeError(f"Cannot delete immutable instance attribute '{name}'")

    def __getitem__(self, key: str) -> Any:
        if key == 'type':
            return self.type
        if isinstance(self.payload, Mapping) and key in self.payload:
            return self.payload[key]
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return key == 'type' or (isinstance(self.payload, Mapping) and key in self.payload)

    def __iter__(self) -> Iterator[str]:
        yield 'type'
        if isinstance(self.payload, Mapping):
            yield from self.payload

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def to_dict(self) -> Dict[str, Any]:
        """
        轉換為普通字典。

        映射型負載會被展開為同層欄位，其他負載放在 "payload" 鍵下。
        """
        if isinstance(self.payload, Mapping):
            return {'type': self.type, **dict(self.payload)}
        if self.payload is None:
            return {'type': self.type}
        return {'type': self.type, 'payload': self.payload}

    def __eq__(self, other):
        if not isinstance(other, Action):
            return False
        return self.type == other.type and self.payload == other.payload

    def __hash__(self):
        return hash((self.type, self.payload))

    def __repr__(self):
        return f"Action(type='{self.type}', payload={repr(self.payload)})"


AnyAction = Union[Action[Any], Mapping[str, Any]]


def get_action_type(action: Any) -> Optional[str]:
    """
    讀取 action 的類型標籤。

    Args:
        action: Action 實例、含 "type" 鍵的映射或任何帶 type 屬性的對象

    Returns:
        類型標籤；缺少標籤時返回 None（不視為錯誤）
    """
    if isinstance(action, Action):
        return action.type
    if isinstance(action, Mapping):
        return action.get('type')
    return getattr(action, 'type', None)


def is_action(obj: Any) -> bool:
    """判斷一個對象是否為普通 action（而非 thunk 或 coroutine）。"""
    return isinstance(obj, Action) or (isinstance(obj, Mapping) and 'type' in obj)


def _process_payload(payload: Any) -> Any:
    """
    處理 payload，將字典轉換為不可變結構。

    Args:
        payload: 原始 payload

    Returns:
        處理後的 payload
    """
    if isinstance(payload, dict):
        return Map(payload)
    return payload


@overload
def create_action(action_type: str) -> Callable[[], Action[None]]:
    ...


@overload
def create_action(action_type: str, prepare_fn: Callable[..., P]) -> Callable[..., Action[P]]:
    ...


def create_action(action_type: str, prepare_fn: Optional[Callable[..., Any]] = None) -> Callable[..., Action[Any]]:
    """
    創建一個 Action 生成器函數。

    Args:
        action_type: Action 的類型標識符
        prepare_fn: 可選的預處理函數，用於在創建 Action 前處理輸入參數

    Returns:
        一個可調用的函數，用於生成指定類型的 Action

    範例:
        >>> increment = create_action("[Counter] Increment")
        >>> increment()  # 返回 Action(type="[Counter] Increment", payload=None)
        >>>
        >>> add = create_action("[Counter] Add", lambda amount: amount)
        >>> add(5)  # 返回 Action(type="[Counter] Add", payload=5)
    """
    def action_creator(*args: Any, **kwargs: Any) -> Action[Any]:
        if prepare_fn:
            return Action(action_type, _process_payload(prepare_fn(*args, **kwargs)))
        if len(args) == 1 and not kwargs:
            return Action(action_type, _process_payload(args[0]))
        if args or kwargs:
            payload: Dict[Union[int, str], Any] = dict(zip(range(len(args)), args))
            payload.update(kwargs)
            return Action(action_type, _process_payload(payload))
        # 無參數，無負載
        return Action(action_type)

    # 添加 type 屬性以便於識別
    action_creator.type = action_type  # type: ignore
    action_creator.__name__ = f"create_{action_type}"
    return action_creator


def make_action_creator(action_type: str, *field_names: str) -> Callable[..., Action[Map]]:
    """
    以欄位名稱生成 Action 創建器。

    位置參數依序對應 field_names，也可以用關鍵字參數指定欄位；
    未提供的欄位值為 None，多出的參數不會進入負載。

    Args:
        action_type: Action 的類型標識符
        *field_names: 負載欄位名稱

    Returns:
        Action 創建器，生成的 Action 負載為包含所有欄位的 Map

    範例:
        >>> edit_todo = make_action_creator("EDIT_TODO", "id", "text")
        >>> edit_todo(1, "buy milk")["text"]
        'buy milk'
    """
    def action_creator(*args: Any, **kwargs: Any) -> Action[Map]:
        fields = dict.fromkeys(field_names)
        # 多餘的位置參數與未知的關鍵字參數直接忽略
        fields.update(zip(field_names, args))
        fields.update((k, v) for k, v in kwargs.items() if k in fields)
        return Action(action_type, Map(fields) if field_names else None)

    action_creator.type = action_type  # type: ignore
    action_creator.field_names = field_names  # type: ignore
    action_creator.__name__ = f"create_{action_type}"
    return action_creator


# 根 Actions
init_store = create_action("[Root] Init Store")
update_reducer = create_action("[Root] Update Reducer")
