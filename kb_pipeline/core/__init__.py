"""
Core domain layer: state machine, exceptions, stage names, and the
document processing tasks.
"""
