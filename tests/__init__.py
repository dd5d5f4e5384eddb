"""
Test Suite Initialization

plan-council test configuration.
"""
