"""Persistence layer"""
from triage_desk.repositories.sync_repository import SyncRepository

__all__ = ["SyncRepository"]
