"""
graphwire - resilient client core for throttled, paginated REST resource APIs.
"""

__version__ = "0.1.0"
