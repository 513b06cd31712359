"""AG2 agent factories used by the generation services."""
