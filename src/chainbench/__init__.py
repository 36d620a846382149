"""
chainbench - comparative benchmarks for blockchain-data API providers
"""

__version__ = "0.3.0"
