"""Error types raised by the metadata fetcher."""


class DbmdError(Exception):
    pass


class ConfigurationError(DbmdError):
    """Connection properties are missing or invalid."""


class PatternError(DbmdError):
    """An include/exclude relation pattern could not be decoded or compiled."""


class MetadataSourceError(DbmdError):
    """The metadata source failed or violated its cursor ordering contract."""


class RelationNotFoundError(DbmdError):
    pass


class AmbiguousForeignKeyError(DbmdError):
    pass


__all__ = [
    "DbmdError",
    "ConfigurationError",
    "PatternError",
    "MetadataSourceError",
    "RelationNotFoundError",
    "AmbiguousForeignKeyError",
]
