"""
派发与调谐过程中的异常定义
"""


class DispatchError(Exception):
    """
    单次派发失败（终态，不重试，通过 followup 消息告知用户）。
    """


class ConfigurationNotFoundError(DispatchError):
    pass


class AmbiguousConfigurationError(DispatchError):
    pass


class InvalidPatternError(DispatchError):
    pass


class NoMatchingActionError(DispatchError):
    pass


class AlreadyRunningError(DispatchError):
    """
    同一 (DiscordInteraction, action) 的 Job 仍然存在。
    """

    def __init__(self, job_name: str) -> None:
        super().__init__(f"job {job_name} is already running")
        self.job_name = job_name


class InvalidCommandError(ValueError):
    """
    spec.commands 中的某条命令无法解析。
    """


class RequeueRequested(Exception):
    """
    调谐器要求立即再跑一轮（例如刚挂上 finalizer）。
    """
