"""
claudette: token usage and session statistics from coding assistant logs.
"""

__version__ = "0.1.0"
