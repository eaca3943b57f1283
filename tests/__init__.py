"""Test package for stockbot."""
