"""
speechfixer: replace spoken words in recordings with a cloned voice.
"""

__version__ = "0.1.0"
