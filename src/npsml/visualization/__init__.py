"""Figures for simulated series and likelihood diagnostics."""
