"""
BizForge CLI
"""
