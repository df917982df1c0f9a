"""
Certificate store package.

Contains the client that downloads signing certificates from the platform's
certificate host and caches them in memory.

Key points:
- The cache is owned by an explicitly constructed store; there is no
  module-level instance, so separate verifiers can hold isolated caches.
- Caching is off by default (``max_entries=0``); entries expire after
  ``max_age`` seconds and are evicted least-recently-used.
- Concurrent requests for the same URL share one download.
"""

from .store import CertificateStore, CachedCertificate

__all__ = [
    "CachedCertificate",
    "CertificateStore",
]
