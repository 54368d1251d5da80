"""Adapters that connect covtree to external coverage tools."""
