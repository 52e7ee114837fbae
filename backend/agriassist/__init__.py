"""AgriAssist: AI-backed agriculture dashboard backend"""

__version__ = "0.1.0"
