"""
Utilities package for the Railway Deadlock Manager.
Contains scenario construction, DOT export and logging.
"""
