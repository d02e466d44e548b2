"""
HTTP surface over the reconciliation core.
"""

from supply_recon.api.server import SupplyApi, start_api_server

__all__ = ["SupplyApi", "start_api_server"]
