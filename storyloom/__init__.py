"""Branching-story viewer core: story models, generator, traversal, saves."""
