"""Client-side session state."""

from academia.store.entity_store import CollectionState, EntityKind, EntityStore

__all__ = ["CollectionState", "EntityKind", "EntityStore"]
