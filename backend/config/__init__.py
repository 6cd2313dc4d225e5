"""
Configuration package for RECheck.

This package contains Django settings, URL routing, and WSGI configuration.
"""
