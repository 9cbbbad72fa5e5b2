"""Durable job queue, registry and worker that drive scattered and gathered jobs."""
