"""Trajectory/motion types and their tabular file format."""
