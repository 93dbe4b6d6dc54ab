"""
ScrollStitch - long screenshots from overlapping screen captures
"""

__version__ = "1.0.0"
