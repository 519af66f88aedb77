"""
Editor backend: repository import and synchronization for an in-browser editor.
"""

__version__ = "1.0.0"
