"""
触发层（Triggers）

Discord webhook 负责校验签名并把 APPLICATION_COMMAND 归一化为 Interaction，
再委托 InteractionDispatcher 统一完成：配置查找、模式匹配、去重、创建 Job、回复 followup。
"""

from jobrelay.services.triggers.service import InteractionDispatcher

__all__ = ["InteractionDispatcher"]
