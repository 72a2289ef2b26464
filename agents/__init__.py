# server/agents/__init__.py
"""
Agents package
"""
