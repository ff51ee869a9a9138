"""
Application layer: stage services and the pipeline runner.

Services orchestrate core tasks and boundary adapters; the runner maps
stage names to service calls.
"""
