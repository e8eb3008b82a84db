"""
PyQt6 User Interface module.

Provides the main application window and the side-by-side
comparison panels.
"""
