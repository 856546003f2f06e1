"""
Training Assets: material repository, relationship graph and quiz scoring.
"""

__version__ = "1.0.0"
