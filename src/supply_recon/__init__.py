"""
supply_recon: layer-one / layer-two token supply reconciliation service.
"""

__version__ = "0.1.0"
