"""
AFSP Coaching - fitness coaching platform backend and client SDK.

This package contains the complete application:
- core: Framework-agnostic domain models, validation and the program wizard
- infrastructure: Identity, key-value and object storage integrations
- api: FastAPI routes and dependencies
- client: Async SDK for the athlete/admin front-end flows
- config: Application configuration
"""

__version__ = "0.1.0"
