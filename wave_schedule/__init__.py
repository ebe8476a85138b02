"""
Wave lake schedule scraper and session alert engine.
"""

__version__ = "0.1.0"
