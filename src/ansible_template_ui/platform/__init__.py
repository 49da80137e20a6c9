"""
Platform layer: child process execution and scratch files.
"""
