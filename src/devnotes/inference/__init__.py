"""Inference backends and the types they share."""
