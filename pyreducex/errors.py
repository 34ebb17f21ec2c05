"""
PyReduceX 的錯誤定義與集中式錯誤處理。

所有庫內拋出的異常都繼承自 PyReduceXError，並攜帶結構化的 details，
方便 ErrorHandler 記錄與上報。
"""
import functools
import logging
import traceback
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

logger = logging.getLogger("pyreducex")

T = TypeVar("T")


class PyReduceXError(Exception):
    """所有 PyReduceX 異常的基礎類。"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        # 保存建立時的堆疊，方便事後報告
        self.traceback = "".join(traceback.format_stack()[:-1])

    def to_dict(self) -> Dict[str, Any]:
        """
        將錯誤轉換為可序列化的字典。

        Returns:
            包含錯誤類型、訊息與細節的字典。
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": dict(self.details),
            "traceback": self.traceback,
        }

    def __str__(self) -> str:
        if not self.details:
            return self.message
        detail_text = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({detail_text})"


class ActionError(PyReduceXError):
    """與 Action 相關的錯誤。"""

    def __init__(self, message: str, action_type: Optional[str] = None, payload: Any = None, **kwargs: Any):
        details = {"action_type": action_type, **kwargs}
        if payload is not None:
            details["payload"] = payload
        super().__init__(message, details)


class StoreError(PyReduceXError):
    """與 Store 相關的錯誤。"""

    def __init__(self, message: str, operation: str, **kwargs: Any):
        super().__init__(message, {"operation": operation, **kwargs})


class ReentrantDispatchError(StoreError):
    """reducer 執行期間再次 dispatch 時拋出。"""

    def __init__(self, action_type: Optional[str] = None, **kwargs: Any):
        super().__init__(
            "Reducers may not dispatch actions; dispatch from a thunk or middleware instead",
            operation="dispatch",
            action_type=action_type,
            **kwargs,
        )


class ConfigurationError(PyReduceXError):
    """配置相關的錯誤。"""

    def __init__(self, message: str, component: str, config_key: Optional[str] = None, **kwargs: Any):
        super().__init__(message, {"component": component, "config_key": config_key, **kwargs})


class ErrorHandler:
    """
    集中式錯誤處理器，用於捕獲、日誌記錄和錯誤報告。

    錯誤會寫入 "pyreducex" logger，並逐一轉交給已註冊的處理函數。
    """

    def __init__(self, log_to_console: bool = True, log_to_file: bool = False, log_file: Optional[str] = None):
        """
        初始化 ErrorHandler。

        Args:
            log_to_console: 是否輸出到 logger
            log_to_file: 是否額外寫入檔案
            log_file: 日誌檔案路徑，log_to_file 為 True 時必填
        """
        if log_to_file and not log_file:
            raise ConfigurationError(
                "log_file is required when log_to_file is enabled",
                component="ErrorHandler",
                config_key="log_file",
            )
        self.log_to_console = log_to_console
        self.log_to_file = log_to_file
        self.log_file = log_file
        self.handlers: List[Callable[[PyReduceXError], None]] = []
        self._file_handler: Optional[logging.Handler] = None

        if log_to_file:
            self._file_handler = logging.FileHandler(log_file, encoding="utf-8")
            self._file_handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            )
            logger.addHandler(self._file_handler)

    def register_handler(self, handler: Callable[[PyReduceXError], None]) -> None:
        """
        註冊錯誤處理函數。

        Args:
            handler: 接收 PyReduceXError 的回調
        """
        self.handlers.append(handler)

    def unregister_handler(self, handler: Callable[[PyReduceXError], None]) -> None:
        if handler in self.handlers:
            self.handlers.remove(handler)

    def handle(self, error: Union[PyReduceXError, Exception]) -> None:
        """
        處理一個錯誤。

        非 PyReduceXError 的異常會先包裝為 PyReduceXError，
        原始異常保存在 details["original_error"]。

        Args:
            error: 要處理的錯誤
        """
        if not isinstance(error, PyReduceXError):
            wrapped = PyReduceXError(str(error), {"original_error": error.__class__.__name__})
            wrapped.__cause__ = error
            error = wrapped

        if self.log_to_console or self.log_to_file:
            logger.error("%s: %s", error.__class__.__name__, error)

        for handler in list(self.handlers):
            handler(error)

    def close(self) -> None:
        """移除檔案 handler。"""
        if self._file_handler is not None:
            logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None


# 單例錯誤處理器
global_error_handler = ErrorHandler()


def handle_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    裝飾器：將函數內拋出的異常交給 global_error_handler 後重新拋出。

    Args:
        func: 被裝飾的函數

    Returns:
        包裝後的函數
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return func(*args, **kwargs)
        except Exception as err:
            global_error_handler.handle(err)
            raise
    return wrapper
