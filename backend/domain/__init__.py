"""
Domain Layer

This package contains the broadcast domain model, separated from process
management and HTTP concerns.

Structure:
- entities/: Broadcast jobs and the process handles they own
- value_objects/: Immutable types (stream state, destinations, external job names)
"""
