"""Tallyman protocols."""

from tallyman.protocols.config import (
    ConfigProvider,
    ConfigSnapshot,
    PointsConfig,
    WholesaleConfig,
)

__all__ = [
    "ConfigProvider",
    "ConfigSnapshot",
    "PointsConfig",
    "WholesaleConfig",
]
