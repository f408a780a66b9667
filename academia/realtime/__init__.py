"""Realtime change delivery."""

from academia.realtime.feed import COLLECTIONS, ChangeEvent, ChangeFeed

__all__ = ["COLLECTIONS", "ChangeEvent", "ChangeFeed"]
