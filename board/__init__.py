"""Bulletin board backend: Firestore data layer, admin services and HTTP API."""

__version__ = "1.0.0"
