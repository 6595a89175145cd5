"""
集群资源模型：DiscordInteraction（自定义资源）与 batch/v1 Job

字段别名与 Kubernetes 序列化格式保持一致，未建模的字段通过 extra="allow" 原样保留，
保证 get -> update 往返时不会丢字段。
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

API_GROUP = "jobrelay.dev"

LABEL_KEY_DISCORD_GUILD_ID = f"{API_GROUP}/discord-guild-id"
ANNOT_KEY_COMMANDS = f"{API_GROUP}/commands"
FINALIZER_DISCORD_INTERACTION = f"{API_GROUP}/discord-interaction"

LABEL_KEY_JOB = f"{API_GROUP}/job"
ANNOT_KEY_DISCORD_INTERACTION = f"{API_GROUP}/discord-interaction"
ANNOT_KEY_ACTION = f"{API_GROUP}/action"
ANNOT_KEY_DISCORD_INTERACTION_TOKEN = f"{API_GROUP}/discord-interaction-token"


class ObjectMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    namespace: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)
    finalizers: List[str] = Field(default_factory=list)
    deletion_timestamp: Optional[str] = Field(default=None, alias="deletionTimestamp")
    resource_version: Optional[str] = Field(default=None, alias="resourceVersion")


class Resource(BaseModel):
    """
    所有资源的公共部分。
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    api_version: str = Field(default="", alias="apiVersion")
    kind: str = ""
    metadata: ObjectMeta

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ActionInline(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    job_template: Dict[str, Any] = Field(default_factory=dict, alias="jobTemplate")


class InteractionAction(BaseModel):
    """
    一条 action：pattern（YAML/JSON 文本）+ 命中后要创建的 Job 模板。
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    pattern: str
    action_inline: ActionInline = Field(default_factory=ActionInline, alias="actionInline")


class DiscordInteractionSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    guild_id: str = Field(..., alias="guildID")
    actions: List[InteractionAction] = Field(default_factory=list)
    # 每条是一份 YAML/JSON 文档，描述一个 guild 命令
    commands: List[str] = Field(default_factory=list)


class DiscordInteraction(Resource):
    api_version: str = Field(default=f"{API_GROUP}/v1", alias="apiVersion")
    kind: str = "DiscordInteraction"
    spec: DiscordInteractionSpec


class JobCondition(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    status: str


class JobStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    conditions: List[JobCondition] = Field(default_factory=list)


class Job(Resource):
    api_version: str = Field(default="batch/v1", alias="apiVersion")
    kind: str = "Job"
    spec: Dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = Field(default_factory=JobStatus)

    def is_condition_true(self, condition_type: str) -> bool:
        return any(
            cond.type == condition_type and cond.status == "True"
            for cond in self.status.conditions
        )

    @property
    def succeeded(self) -> bool:
        return self.is_condition_true("Complete")

    @property
    def failed(self) -> bool:
        return self.is_condition_true("Failed")


class Interaction(BaseModel):
    """
    Discord APPLICATION_COMMAND 交互（只保留派发需要的字段）。
    """

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    type: int
    data: Any = None
    guild_id: str = ""
    channel_id: str = ""
    token: str
