"""Catalog sync broadcasting."""

from .broadcaster import GLOBAL_SCOPE, ScopeReceiver, Subscription, SyncBroadcaster

__all__ = ["GLOBAL_SCOPE", "ScopeReceiver", "Subscription", "SyncBroadcaster"]
