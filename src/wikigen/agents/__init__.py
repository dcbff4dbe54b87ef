"""Agent sessions and the tools they can use."""
