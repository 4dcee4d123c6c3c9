"""Exceptions raised by robust_pgo."""


class RobustPgoError(Exception):
    """Base class for all robust_pgo errors."""


class ConfigurationError(RobustPgoError, ValueError):
    """Raised when a solver is constructed with an unsupported configuration.

    Covers unknown outlier removal methods, unknown solver types and
    optimizer parameters the backend cannot dispatch on.
    """

    def __init__(self, setting: str, value: object) -> None:
        self.setting = setting
        self.value = value
        super().__init__(f"Unsupported {setting}: {value!r}")
