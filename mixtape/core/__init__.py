"""Matching, bulk resolution and lease primitives."""
