"""
guild 命令列表的规范化与内容摘要

每条命令按 YAML 解析（时间戳、六十进制数保持字符串）后序列化为紧凑、key 排序的 JSON；
摘要对整个列表的规范 JSON 计算，只有这一种编码。
"""
from __future__ import annotations

import hashlib
import json
from typing import Any, List, Sequence

import yaml

from jobrelay.core.errors import InvalidCommandError
from jobrelay.core.yamlload import load_yaml


def canonical_json(value: Any) -> str:
    # 显式标签（如 !!binary、!!set）产生的非 JSON 值统一转成字符串
    return json.dumps(
        value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )


def load_commands(sources: Sequence[str]) -> List[Any]:
    documents = []
    for index, source in enumerate(sources):
        try:
            documents.append(load_yaml(source))
        except yaml.YAMLError as exc:
            raise InvalidCommandError(f"failed to parse command #{index}: {exc}") from exc
    return documents


def canonicalize_commands(sources: Sequence[str]) -> List[str]:
    return [canonical_json(document) for document in load_commands(sources)]


def commands_digest(sources: Sequence[str]) -> str:
    """
    命令列表的 SHA-224 摘要（hex），作为 DiscordInteraction 上的变更检测记录。
    """
    payload = canonical_json(load_commands(sources))
    return hashlib.sha224(payload.encode("utf-8")).hexdigest()
