"""
BizForge - business application generation orchestrator
"""

__version__ = "1.0.0"
