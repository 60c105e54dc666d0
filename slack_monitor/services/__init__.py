"""
Persistence services.
"""

from .message_store import MessageStore, MessageStoreError

__all__ = ["MessageStore", "MessageStoreError"]
