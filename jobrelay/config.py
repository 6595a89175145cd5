from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    全局配置，从环境变量 / .env 中读取。
    """

    # Discord 应用配置
    DISCORD_APPLICATION_ID: str
    DISCORD_BOT_TOKEN: str
    DISCORD_APPLICATION_PUBLIC_KEY: str
    DISCORD_API_BASE_URL: str = "https://discord.com/api/v10"
    DISCORD_API_TIMEOUT_S: float = 10.0

    # Webhook 服务
    LISTEN_HOST: str = "0.0.0.0"
    LISTEN_PORT: int = 38000
    SHUTDOWN_GRACE_S: float = 10.0

    # 派发与调谐
    NAMESPACE: str = "default"
    DISPATCH_TIMEOUT_S: float = 5.0
    RESYNC_INTERVAL_S: float = 30.0
    REQUEUE_DELAY_S: float = 1.0
    ERROR_BACKOFF_S: float = 5.0

    # 资源存储：kubernetes（集群内）或 memory（本地调试）
    STORE_BACKEND: Literal["kubernetes", "memory"] = "kubernetes"
    KUBERNETES_API_URL: str = "https://kubernetes.default.svc"
    KUBERNETES_TOKEN_PATH: str = "/var/run/secrets/kubernetes.io/serviceaccount/token"
    KUBERNETES_CA_PATH: str = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"
    KUBERNETES_TIMEOUT_S: float = 10.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("DISCORD_APPLICATION_PUBLIC_KEY")
    @classmethod
    def _check_public_key(cls, value: str) -> str:
        # Ed25519 公钥：32 字节，hex 编码
        try:
            raw = bytes.fromhex(value)
        except ValueError as exc:
            raise ValueError("DISCORD_APPLICATION_PUBLIC_KEY must be hex encoded") from exc
        if len(raw) != 32:
            raise ValueError("DISCORD_APPLICATION_PUBLIC_KEY must be 32 bytes")
        return value


@lru_cache
def get_settings() -> Settings:
    """
    获取全局单例配置实例。
    """
    return Settings()
