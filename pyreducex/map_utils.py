"""
寫時複製 (copy-on-write) 的狀態更新工具。

這些函數從不修改傳入的物件，只沿著更新路徑複製，
未觸及的分支保持原引用，讓 reducer 能以 `is` 判斷是否變更。
"""
from typing import Any, Callable, Hashable, Iterable, Mapping, Sequence, Tuple

from immutables import Map


def update_object(old: Mapping[str, Any], **values: Any) -> Mapping[str, Any]:
    """
    返回帶有新值的淺拷貝，保留原映射類型 (dict 或 Map)。

    Args:
        old: 原始映射
        **values: 要覆寫的鍵值

    Returns:
        新映射；若所有值都與原值相同 (is)，返回原映射
    """
    if all(k in old and old[k] is v for k, v in values.items()):
        return old
    if isinstance(old, Map):
        return old.update(values)
    new = dict(old)
    new.update(values)
    return new


def update_item_in_array(
    items: Iterable[Any],
    item_id: Any,
    update_fn: Callable[[Any], Any],
    key: str = "id",
) -> Tuple[Any, ...]:
    """
    只替換 key 等於 item_id 的元素，其他元素保持原引用。

    Args:
        items: 原始序列
        item_id: 目標元素的識別值
        update_fn: 接收舊元素並返回新元素的函數
        key: 識別欄位名稱，預設為 "id"

    Returns:
        更新後的 tuple
    """
    return tuple(
        update_fn(item) if item[key] == item_id else item
        for item in items
    )


def update_in(mapping: Mapping[Hashable, Any], path: Sequence[Hashable], update_fn: Callable[[Any], Any]) -> Mapping[Hashable, Any]:
    """
    沿著 path 複製巢狀映射，並以 update_fn 更新葉節點。

    路徑上不存在的鍵會以空映射補上，葉節點不存在時 update_fn 收到 None。

    Args:
        mapping: 原始巢狀映射
        path: 鍵路徑
        update_fn: 接收舊葉節點並返回新值的函數

    Returns:
        新的巢狀映射；若葉節點未變更 (is)，返回原映射
    """
    if not path:
        return update_fn(mapping)

    head, rest = path[0], path[1:]
    child = mapping.get(head)
    if rest and child is None:
        child = Map() if isinstance(mapping, Map) else {}
    new_child = update_in(child, rest, update_fn) if rest else update_fn(child)

    if head in mapping and new_child is mapping[head]:
        return mapping
    return _set_key(mapping, head, new_child)


def _set_key(mapping: Mapping[Hashable, Any], key: Hashable, value: Any) -> Mapping[Hashable, Any]:
    if isinstance(mapping, Map):
        return mapping.set(key, value)
    new = dict(mapping)
    new[key] = value
    return new
