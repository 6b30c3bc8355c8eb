"""
experiments package: batch driver and scenario definitions for the checkout
simulator.
"""
