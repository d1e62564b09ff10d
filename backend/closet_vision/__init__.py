"""
Closet Vision

Garment detection, extraction and closet-matching pipeline:
- Multi-item garment detection through an external vision service
- Padded, boundary-clamped garment crops
- Background removal through a provider fallback chain with caching
- Fuzzy matching of observed garments against a closet inventory
"""

__version__ = "0.1.0"
