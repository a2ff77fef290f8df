"""
Models package for the Railway Deadlock Manager.
Contains the allocation ledger, wait-for graph, checkpoint store and result values.
"""
