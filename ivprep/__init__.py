"""
IV Preparation Manager – records backend for hospital pharmacy IV worksheets.
"""

__version__ = "1.0.0"
