"""Prometheus metrics shared by the transfer layer."""

from __future__ import annotations

from r2_transfer.infra.metrics.prometheus import REGISTRY

__all__ = ["REGISTRY"]
