"""
Core workflow pieces: exceptions, retry policy, and the order workflow steps.
"""
