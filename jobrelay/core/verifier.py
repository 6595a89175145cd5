"""
Discord 交互请求签名校验

签名内容 = X-Signature-Timestamp 原始字节 + 原始请求体，算法 Ed25519。
"""
from __future__ import annotations

from typing import Mapping

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

SIGNATURE_HEADER = "X-Signature-Ed25519"
TIMESTAMP_HEADER = "X-Signature-Timestamp"


class SignatureDecodeError(ValueError):
    """
    签名头不是合法的 hex（与「签名不匹配」区分开）。
    """


class InteractionVerifier:
    def __init__(self, public_key_hex: str) -> None:
        self._public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))

    def verify(self, headers: Mapping[str, str], body: bytes) -> bool:
        """
        校验通过返回 True，签名不匹配返回 False；签名无法解码时抛出 SignatureDecodeError。
        """
        signature_hex = _header(headers, SIGNATURE_HEADER)
        timestamp = _header(headers, TIMESTAMP_HEADER)

        try:
            signature = bytes.fromhex(signature_hex)
        except ValueError as exc:
            raise SignatureDecodeError(f"invalid signature encoding: {exc}") from exc

        # Starlette 以 latin-1 解码 header，按 latin-1 编码即可还原原始字节
        message = timestamp.encode("latin-1") + body
        try:
            self._public_key.verify(signature, message)
        except InvalidSignature:
            return False
        return True


def _header(headers: Mapping[str, str], name: str) -> str:
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value or ""
