"""batchkeeper 异常体系

前置条件类错误（NoBatchLoaded / AlreadyRunning / BatchPaused）与输入错误
（InvalidArgument / InvalidBatch）由 Session 在公开边界转换为结构化响应。
PreflightRejected、OperationFailed、VerificationInconclusive 是任务结果，
记录在任务状态上，不以异常形式出现。
"""


class BatchError(Exception):
    """batchkeeper 基础异常"""

    code: str = "BATCH_ERROR"

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 调用方修正条件后是否可重试
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class InvalidArgumentError(BatchError):
    """输入缺失或格式错误（如空任务列表、缺少 operation）"""

    code = "INVALID_ARGUMENT"


class InvalidBatchError(BatchError):
    """批次定义/状态文件不存在、无法解析或不含任务"""

    code = "INVALID_BATCH"


class NoBatchLoadedError(BatchError):
    """当前 Session 未加载任何批次"""

    code = "NO_BATCH_LOADED"

    def __init__(self, message: str = "No batch loaded. Use loadBatch or resumeBatch first.") -> None:
        super().__init__(message, recoverable=True)


class AlreadyRunningError(BatchError):
    """批次已在运行中"""

    code = "ALREADY_RUNNING"

    def __init__(self, message: str = "Batch is already running") -> None:
        super().__init__(message, recoverable=True)


class BatchPausedError(BatchError):
    """批次已暂停，拒绝派发"""

    code = "BATCH_PAUSED"

    def __init__(
        self, message: str = "Batch is paused. Start a new run to continue."
    ) -> None:
        super().__init__(message, recoverable=True)


class InvalidTransitionError(BatchError):
    """任务状态流转不合法"""

    code = "INVALID_TRANSITION"


class PersistenceError(BatchError):
    """状态文件写入失败

    执行器捕获后仅记录日志，不中断批次。
    """

    code = "PERSISTENCE_FAILURE"

    def __init__(self, path: str, original_error: Exception) -> None:
        super().__init__(f"Error saving state to {path}: {original_error}", recoverable=True)
        self.path = path
        self.original_error = original_error
