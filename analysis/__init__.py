"""
Analysis package for the Railway Deadlock Manager.
Contains the event log recorded while running scenarios.
"""
