"""
Persistence for evaluation jobs, result sets and event logs.
"""

from .filesystem import FileSystemStorage, JobSummary, Storage

__all__ = ["Storage", "FileSystemStorage", "JobSummary"]
