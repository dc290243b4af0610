"""
Shop connector: OAuth broker that links a TikTok Shop seller account to an
install and keeps the resulting tokens encrypted at rest.
"""

__version__ = "0.1.0"
