"""
Command line front ends.
"""
