"""
DoH Flag Resolver
Rate-limited DNS-over-HTTPS resolution racing multiple providers, with geo enrichment and caching
"""

from .resolvers import ResolutionOutcome, Resolver, create_resolver

__version__ = "0.1.0"
__all__ = ["Resolver", "ResolutionOutcome", "create_resolver"]
