"""
Orchestration modules: plan building and generation collaborators
"""
