"""
Upstream data sources: subgraph GraphQL adapters and block resolution.
"""

from supply_recon.sources.base import BlockResolver, LayerOneSource, LayerTwoSource
from supply_recon.sources.blocks import EtherscanBlocks
from supply_recon.sources.graphql import GraphQLClient
from supply_recon.sources.layer_one import LayerOneSubgraph
from supply_recon.sources.layer_two import LayerTwoSubgraph

__all__ = [
    "BlockResolver",
    "LayerOneSource",
    "LayerTwoSource",
    "EtherscanBlocks",
    "GraphQLClient",
    "LayerOneSubgraph",
    "LayerTwoSubgraph",
]
