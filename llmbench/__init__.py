"""
LLM Bench: side-by-side comparison and annotation of generated text.
"""

__version__ = "0.3.0"
APP_NAME = "LLMbench"
