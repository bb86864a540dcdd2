"""
Utility functions
"""
from triage_desk.utils.logger import setup_logger, get_logger
from triage_desk.utils.text import tokenize, subject_keywords

__all__ = [
    "setup_logger",
    "get_logger",
    "tokenize",
    "subject_keywords",
]
