"""Core render pipeline: storage, script execution and markup conversion."""
