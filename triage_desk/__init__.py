"""
Triage Desk - AI-assisted ticket triage and draft review pipeline
"""
__version__ = "1.0.0"
