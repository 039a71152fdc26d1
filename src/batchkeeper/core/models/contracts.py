"""外部协作方文档模型

预检报告、操作结果、校验结论的结构化定义。
协作方可以直接返回这些模型，也可以返回等价的 dict 文档，
核心统一经 model_validate 收敛为模型。
"""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# 外部系统中的资源标识
Identifier = int | str


class PreflightReport(BaseModel):
    """预检报告 -- 操作执行前的可行性判断"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    can_proceed: bool = Field(default=True, description="是否允许执行")
    issues: list[str] = Field(default_factory=list, description="阻断问题")
    suggestions: list[str] = Field(default_factory=list, description="修正建议")
    warnings: list[str] = Field(default_factory=list, description="非阻断警告")

    @field_validator("issues", "suggestions", "warnings", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class OperationResult(BaseModel):
    """操作执行结果

    受影响资源只通过两个字段声明：
    - resource_id: 单个新建/删除资源的标识
    - resource_ids: 批量资源标识
    其余字段原样保留（extra="allow"），随任务结果一起落盘。
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    AFFECTED_ID_FIELDS: ClassVar[tuple[str, ...]] = ("resource_id", "resource_ids")

    success: bool = Field(default=False, description="操作是否成功")
    error: str | None = Field(default=None, description="失败原因")
    resource_id: Identifier | None = Field(default=None, description="单个受影响资源")
    resource_ids: list[Identifier] = Field(default_factory=list, description="批量受影响资源")

    @field_validator("resource_ids", mode="before")
    @classmethod
    def _null_ids(cls, value: Any) -> Any:
        return [] if value is None else value

    def affected_ids(self) -> list[Identifier]:
        """按声明顺序返回所有受影响资源标识（单个在前）"""
        ids: list[Identifier] = []
        if self.resource_id is not None:
            ids.append(self.resource_id)
        ids.extend(self.resource_ids)
        return ids

    def to_document(self) -> dict[str, Any]:
        """序列化为落盘用的 camelCase 文档（含 extra 字段）"""
        return self.model_dump(mode="json", by_alias=True)


class VerificationOutcome(BaseModel):
    """结果校验结论"""

    verified: bool = Field(description="外部效果是否确认发生")
    message: str = Field(default="", description="校验说明")
