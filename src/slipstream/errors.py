"""Exceptions raised outside the per-iteration advisory paths."""


class SetupError(RuntimeError):
  """Irrecoverable failure before the processing loop starts (no device, no model)."""
