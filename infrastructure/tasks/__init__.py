"""In-process background task infrastructure."""
from .background import BackgroundTaskRunner

__all__ = ["BackgroundTaskRunner"]
