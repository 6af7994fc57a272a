"""yunhubot - Yunhu chat platform adapter."""

__version__ = "0.1.0"
