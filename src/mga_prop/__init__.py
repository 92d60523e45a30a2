"""Patched-conic gravity-assist trajectories and their perturbed propagation."""

__version__ = "0.1.0"
