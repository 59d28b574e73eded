"""Witness delivery: the sink protocol, concrete sinks and the dispatcher."""
