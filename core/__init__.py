"""
Core Module Package.

Infrastructure shared by the content and storage packages.

Components:
- clock: Unified time abstraction
- exceptions: Configuration exception hierarchy
- constants: Content types and column sizes
"""
