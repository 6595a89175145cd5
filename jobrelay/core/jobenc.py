from __future__ import annotations

import hashlib

JOB_NAME_PREFIX = "job-"
JOB_NAME_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def make_job_name(interaction_name: str, action_name: str) -> str:
    """
    由 (DiscordInteraction 名, action 名) 推导确定性的 Job 名。

    该名字同时是去重键：同名 Job 存在期间不会再创建第二个。
    SHA-224 摘要按大端无符号整数解释，再以 36 进制低位在前编码。
    """
    message = interaction_name.encode("utf-8") + b"\0" + action_name.encode("utf-8")
    value = int.from_bytes(hashlib.sha224(message).digest(), "big")

    base = len(JOB_NAME_ALPHABET)
    encoded = []
    while value >= base:
        value, remainder = divmod(value, base)
        encoded.append(JOB_NAME_ALPHABET[remainder])
    encoded.append(JOB_NAME_ALPHABET[value])

    return JOB_NAME_PREFIX + "".join(encoded)
