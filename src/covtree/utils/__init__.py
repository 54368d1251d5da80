"""Shared helpers: URIs, the prefix tree, async caching, cancellation and events."""
