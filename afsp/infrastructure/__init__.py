"""
Infrastructure layer - external service integrations.

Identity (Supabase Auth), the key-value document store (a Supabase table)
and S3-compatible object storage, each with an in-memory mock.
"""
