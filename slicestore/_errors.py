__all__ = (
    "ConfigError",
    "CyclicLinkError",
    "DuplicateActionError",
    "InvalidArgumentsError",
    "InvalidSelectorError",
    "ReservedKeyError",
    "StoreError",
)


class StoreError(Exception):
    pass


class ConfigError(StoreError):
    pass


class ReservedKeyError(StoreError):
    pass


class DuplicateActionError(StoreError):
    pass


class InvalidSelectorError(StoreError):
    pass


class InvalidArgumentsError(StoreError):
    pass


class CyclicLinkError(StoreError):
    pass
