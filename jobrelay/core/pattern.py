"""
结构化模式匹配

pattern 是 data 的「子集模板」，不是深比较：
- 标量（str / int / float）：类型相同且值相等，int 与 float 不互相转换
- mapping：pattern 中的每个 key 都必须出现在 data 中，data 多出来的 key 忽略
- 序列：长度必须完全一致，按位置逐个比较
- 其他组合（类型不一致、bool / None 等）一律不匹配
"""
from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Sequence, Tuple, Union

import yaml

from jobrelay.core.errors import InvalidPatternError, NoMatchingActionError
from jobrelay.core.models import InteractionAction
from jobrelay.core.yamlload import load_yaml

Node = Union[str, int, float, List["Node"], Dict[str, "Node"]]

_SCALAR_TYPES = (str, int, float)


def matches(pattern: Node, data: Any) -> bool:
    """
    广度优先比较 pattern 与 data，遇到第一个不匹配立即返回 False。
    """
    queue: Deque[Tuple[Any, Any]] = deque([(pattern, data)])
    while queue:
        pattern_node, data_node = queue.popleft()

        # 用 type() 精确比较：bool 是 int 的子类，不能混进来
        if type(pattern_node) in _SCALAR_TYPES:
            if type(data_node) is not type(pattern_node) or pattern_node != data_node:
                return False

        elif isinstance(pattern_node, dict):
            if not isinstance(data_node, dict):
                return False
            for key, value in pattern_node.items():
                if key not in data_node:
                    return False
                queue.append((value, data_node[key]))

        elif isinstance(pattern_node, list):
            if not isinstance(data_node, list) or len(pattern_node) != len(data_node):
                return False
            queue.extend(zip(pattern_node, data_node))

        else:
            return False

    return True


def parse_pattern(source: str) -> Node:
    try:
        return load_yaml(source)
    except yaml.YAMLError as exc:
        raise InvalidPatternError(f"failed to parse action pattern: {exc}") from exc


def match_actions(actions: Sequence[InteractionAction], data: Any) -> InteractionAction:
    """
    按声明顺序逐个尝试 action 的 pattern，返回第一个命中的 action。
    """
    for action in actions:
        if matches(parse_pattern(action.pattern), data):
            return action
    raise NoMatchingActionError("no action pattern matches the interaction data")
