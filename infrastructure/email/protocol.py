"""EmailProvider protocol. Services depend on this, not on a concrete provider."""

from typing import Protocol


class EmailProvider(Protocol):
    async def send(self, to_email: str, subject: str, html_body: str) -> bool: ...

    async def send_verification_code(self, email: str, code: str) -> bool: ...

    async def send_api_key(self, email: str, api_key: str) -> bool: ...

    async def send_expiry_notice(self, email: str) -> bool: ...
