"""
pattern / 命令文本共用的 YAML 加载器

在 yaml.SafeLoader 基础上去掉 YAML 1.1 的两类隐式类型：
- 时间戳：`2024-01-01` 保持为字符串，而不是 datetime.date
- 六十进制数：`12:30` 保持为字符串，而不是 750
Discord 交互里的这些值都是字符串，加载结果要与之一致。
"""
from __future__ import annotations

import re
from typing import Any

import yaml

_TAG_INT = "tag:yaml.org,2002:int"
_TAG_FLOAT = "tag:yaml.org,2002:float"
_TAG_TIMESTAMP = "tag:yaml.org,2002:timestamp"

# 与 PyYAML 自带的规则相同，只是去掉了六十进制分支
_INT_PATTERN = re.compile(
    r"""^(?:[-+]?0b[0-1_]+
    |[-+]?0[0-7_]+
    |[-+]?(?:0|[1-9][0-9_]*)
    |[-+]?0x[0-9a-fA-F_]+)$""",
    re.X,
)
_FLOAT_PATTERN = re.compile(
    r"""^(?:[-+]?(?:[0-9][0-9_]*)\.[0-9_]*(?:[eE][-+][0-9]+)?
    |\.[0-9][0-9_]*(?:[eE][-+][0-9]+)?
    |[-+]?\.(?:inf|Inf|INF)
    |\.(?:nan|NaN|NAN))$""",
    re.X,
)


class PlainScalarLoader(yaml.SafeLoader):
    pass


PlainScalarLoader.yaml_implicit_resolvers = {
    first: [
        (tag, regexp)
        for tag, regexp in resolvers
        if tag not in (_TAG_INT, _TAG_FLOAT, _TAG_TIMESTAMP)
    ]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
# 按 SafeLoader 原有顺序（float 在 int 之前）重新注册
PlainScalarLoader.add_implicit_resolver(_TAG_FLOAT, _FLOAT_PATTERN, list("-+0123456789."))
PlainScalarLoader.add_implicit_resolver(_TAG_INT, _INT_PATTERN, list("-+0123456789"))


def load_yaml(source: str) -> Any:
    """
    解析单个 YAML/JSON 文档；语法错误以 yaml.YAMLError 抛出。
    """
    return yaml.load(source, Loader=PlainScalarLoader)
