from typing import Any, Callable, List, Optional, Tuple

from .types import StateSelector


def create_selector(*selectors: StateSelector, result_fn: Optional[Callable[..., Any]] = None, deep: bool = False, maxsize: int = 1) -> StateSelector:
    """
    創建一個複合選擇器，依輸入選擇值記憶化結果。

    狀態不可變，因此預設以 `is` 比較輸入：切片引用未變時直接返回快取結果。

    Args:
        *selectors: 多個輸入選擇器，這些函數會從 state 中提取對應的值
        result_fn: 處理輸出結果的函數，將多個選擇器的輸出進行處理
        deep: 是否以 == 比較輸入（預設為 False，使用 is）
        maxsize: 快取的最大條目數，預設只保留最近一次

    Returns:
        經過快取優化的 selector 函數
    """
    if not selectors:
        raise ValueError("create_selector requires at least one input selector")

    # 如果沒有 result_fn 且只有一個選擇器，直接返回該選擇器
    if result_fn is None and len(selectors) == 1:
        return selectors[0]

    # 如果沒有提供 result_fn，預設為返回所有輸入值的元組
    if result_fn is None:
        result_fn = lambda *args: args

    cache: List[Tuple[Tuple[Any, ...], Any]] = []
    stats = {"hits": 0, "misses": 0}

    def matches(a: Tuple[Any, ...], b: Tuple[Any, ...]) -> bool:
        if deep:
            return a == b
        return all(x is y for x, y in zip(a, b))

    def selector(state: Any) -> Any:
        inputs = tuple(select(state) for select in selectors)

        for cached_inputs, cached_result in cache:
            if matches(inputs, cached_inputs):
                stats["hits"] += 1
                return cached_result

        # 緩存未命中，計算新結果
        stats["misses"] += 1
        result = result_fn(*inputs)
        cache.append((inputs, result))
        while len(cache) > maxsize:
            cache.pop(0)
        return result

    def cache_info() -> Tuple[int, int, int, int]:
        # 與 functools.lru_cache 相同的 (hits, misses, maxsize, currsize) 排列
        return (stats["hits"], stats["misses"], maxsize, len(cache))

    def cache_clear() -> None:
        cache.clear()
        stats["hits"] = stats["misses"] = 0

    selector.cache_info = cache_info  # type: ignore
    selector.cache_clear = cache_clear  # type: ignore

    return selector
