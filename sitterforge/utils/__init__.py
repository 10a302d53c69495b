"""
Shared utilities: configuration, logging, errors and command execution.
"""
