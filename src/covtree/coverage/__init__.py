"""Coverage tree: nodes, sessions and displayed metrics."""
