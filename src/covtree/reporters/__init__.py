"""Output for coverage trees: formatting, bars and the terminal table."""
