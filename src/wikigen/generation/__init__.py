"""Wiki generation: orchestration, retries, fan-out and translation."""
