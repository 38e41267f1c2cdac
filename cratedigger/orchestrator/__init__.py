"""Batch orchestration for album imports."""

from .reddit_import import BatchResult, ImportStage, RedditImportOrchestrator

__all__ = ["BatchResult", "ImportStage", "RedditImportOrchestrator"]
