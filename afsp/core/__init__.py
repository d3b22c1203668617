"""
Core domain logic - framework agnostic.

Nothing in this package imports FastAPI, Supabase or boto3. Entities,
validation rules and the custom program wizard can be tested without any
infrastructure.
"""
