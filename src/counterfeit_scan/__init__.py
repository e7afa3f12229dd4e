"""
Counterfeit scan evaluation engine.

Turns vision analysis output and product metadata into an authenticity
risk score, runs scans as quota-governed background jobs, and feeds human
verification back into scoring.
"""

__version__ = "0.1.0"
