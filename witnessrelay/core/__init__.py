"""Core pipeline: witness codec, item state machine, intake and the batch reconciler."""
