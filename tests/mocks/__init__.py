"""Mock modules for testing without real Firestore calls."""
from .mock_firebase import MockDocumentStore, MockTransaction

__all__ = [
    "MockDocumentStore",
    "MockTransaction",
]
