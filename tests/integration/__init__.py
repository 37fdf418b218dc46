"""
Integration Tests Package for Fleet Tracking System

Integration tests wire the real services, repository and dispatcher together
through the composition root and focus on:
1. End-to-end rental scenarios
2. Optimistic concurrency between competing commands
3. Telemetry ingestion and proximity queries
"""
