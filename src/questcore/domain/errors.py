class QuestCoreError(Exception):
    """Base class for configuration and programming errors raised by questcore."""


class UnsupportedAchievementError(QuestCoreError):
    def __init__(self, key: str, reason: str = "") -> None:
        self.key = str(key)
        message = f"Achievement '{self.key}' has no supported tracked value"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)

