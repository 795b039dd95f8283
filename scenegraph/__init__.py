"""Scene graph prediction primitives: segment nodes, feature buffers, graph-network inference helpers and scan dataset loaders."""

__version__ = "0.1.0"