"""LightUpPi client services."""
