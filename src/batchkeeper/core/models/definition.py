"""BatchDefinition -- create_batch 的入参文档"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BatchDefinition(BaseModel):
    """内联批次定义

    tasks 保持为原始任务文档，由 TaskBatch 统一校验，
    以便把任务级错误报告为 InvalidArgument。
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tasks: list[dict[str, Any]] | None = Field(default=None, description="任务文档列表")
    batch_id: str | None = Field(default=None, description="批次 ID，缺省自动生成")
    name: str | None = Field(default=None, description="批次名称")
    description: str | None = Field(default=None, description="批次描述")
    on_error: str | None = Field(default=None, description="错误策略")
    checkpoint_every: int | None = Field(default=None, description="落盘节奏")
    output_dir: str | None = Field(default=None, description="日志/状态文件目录")
