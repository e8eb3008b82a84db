"""
Services for settings, file I/O, storage and text generation.
"""
