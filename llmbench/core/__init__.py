"""
Core engine: data models, word diff, annotations and export layout.

Nothing in this package touches the network, the filesystem (apart from
writing requested export files) or global settings.
"""
