"""Repository for site branding (the uploaded logo)."""

from typing import Any, Optional

from afsp.core.models import utcnow

from .base import Repository, format_timestamp

LOGO_KEY = "settings:logo"


class BrandingRepository(Repository):

    async def get_logo(self) -> Optional[dict[str, Any]]:
        """Logo document {path, contentType, uploadedBy, updatedAt}, or None."""
        return await self._store.get(LOGO_KEY)

    async def set_logo(self, path: str, content_type: str, uploaded_by: str) -> dict[str, Any]:
        document = {
            "path": path,
            "contentType": content_type,
            "uploadedBy": uploaded_by,
            "updatedAt": format_timestamp(utcnow()),
        }
        await self._store.set(LOGO_KEY, document)
        return document
