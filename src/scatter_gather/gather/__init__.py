"""Scatter/gather join: argument envelopes, the polling coordinator and the facade."""
