"""Lycans match-log statistics, percentiles and player titles."""

__all__ = [
    "config",
    "log",
    "models",
    "roles",
    "zones",
    "results",
    "extractors",
    "aggregate",
    "percentiles",
    "catalog",
    "titles",
    "primary",
    "cache",
    "storage",
    "source_client",
    "sync",
    "pipeline",
    "cli",
]
