"""协作方组合

Collaborators 把一个批次所需的全部外部接口打包在一起，
由 Session 在创建执行器时注入。
"""

from .echo_adapters import (
    AcceptingVerifier,
    AllowAllValidator,
    EchoOperationExecutor,
    LoggingRollbackRecorder,
    NoopViewSwitcher,
)
from .protocols import (
    OperationExecutor,
    PreflightValidator,
    ResultVerifier,
    RollbackRecorder,
    ViewSwitcher,
)


class Collaborators:
    """外部协作方实例组"""

    def __init__(
        self,
        executor: OperationExecutor,
        validator: PreflightValidator,
        verifier: ResultVerifier,
        rollback_recorder: RollbackRecorder,
        view_switcher: ViewSwitcher | None = None,
    ) -> None:
        self.executor = executor
        self.validator = validator
        self.verifier = verifier
        self.rollback_recorder = rollback_recorder
        self.view_switcher = view_switcher


def create_echo_collaborators() -> Collaborators:
    """创建 dry-run 协作方组：所有操作成功、预检放行、校验确认"""
    return Collaborators(
        executor=EchoOperationExecutor(),
        validator=AllowAllValidator(),
        verifier=AcceptingVerifier(),
        rollback_recorder=LoggingRollbackRecorder(),
        view_switcher=NoopViewSwitcher(),
    )
