"""
RSS-to-Speech: narrates recent feed articles into audio files.
"""

__version__ = "1.0.0"
