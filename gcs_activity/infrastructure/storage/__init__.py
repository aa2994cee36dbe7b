"""
Object storage integration for the activity.

Talks to Google Cloud Storage through the official SDK.
Includes mock mode for local development without credentials.
"""
