"""
Infrastructure Layer
=====================

Process-wide technical concerns shared by all modules:
- Database engine and session lifecycle
"""
