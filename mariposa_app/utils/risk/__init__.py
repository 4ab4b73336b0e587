"""Stateless risk calculators rendered by the intelligence widgets."""
