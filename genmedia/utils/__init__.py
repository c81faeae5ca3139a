"""
Utility functions package for genmedia.

This package contains utility modules for:
- Content hashing and content-addressed file naming
"""
