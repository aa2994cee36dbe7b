"""
Infrastructure layer - external service integrations.

- storage: Google Cloud Storage client (plus in-memory mock)

These wrappers translate SDK errors into the activity's error taxonomy.
"""
