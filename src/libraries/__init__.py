"""
Shared data engineering libraries.
"""
