"""
Utilities - Logging, HTTP client construction, and JSON helpers
"""
