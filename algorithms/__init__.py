"""
Algorithms package for the Railway Deadlock Manager.
Contains Banker's avoidance, wait-for graph detection, and recovery implementations.
"""
