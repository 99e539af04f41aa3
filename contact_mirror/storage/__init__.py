"""contact_mirror.storage - Local contact storage."""

from contact_mirror.storage.db import ContactStore, PersistenceError

__all__ = ["ContactStore", "PersistenceError"]
