# server/core/__init__.py
"""
Shared configuration, logging, caching and completion client
"""
