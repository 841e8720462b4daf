"""
Pure transition functions for rides and driver assignments.
Each takes a frozen snapshot and returns a new one, or raises.
"""
