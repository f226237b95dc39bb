"""Resend implementation of EmailProvider.

Sends through the Resend REST API over the shared async HttpClient. Bodies
are rendered from Jinja2 templates under templates/emails. Every send is
best-effort: failures are logged and reported as False, never raised.
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class ResendProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        challenge_ttl_minutes: int = 10,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._ttl_minutes = challenge_ttl_minutes
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _sender(self) -> str:
        if self._settings.from_name:
            return f"{self._settings.from_name} <{self._settings.from_email}>"
        return self._settings.from_email

    async def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.resend_api_key:
            log.error("email_send_failed", reason="api_key_not_configured")
            return False

        payload: dict = {
            "from": self._sender(),
            "to": [to_email],
            "subject": subject,
            "html": html_body,
        }
        if text_body:
            payload["text"] = text_body

        headers = {
            "Authorization": f"Bearer {self._settings.resend_api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = await self._http.post(
                RESEND_API_URL, json=payload, headers=headers
            )
            if response.status_code in (200, 201, 202):
                log.info("email_sent_success", to_email=to_email, subject=subject)
                return True
            log.error(
                "email_send_failed",
                to_email=to_email,
                subject=subject,
                status_code=response.status_code,
                response=response.text[:200],
            )
            return False
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    async def send_verification_code(self, email: str, code: str) -> bool:
        subject = "Bevestig je email voor je API key"
        html_body = self._jinja.get_template("api_key_code.html").render(
            code=code, ttl_minutes=self._ttl_minutes
        )
        text_body = (
            f"Je verificatiecode is: {code}\n\n"
            f"Deze code is {self._ttl_minutes} minuten geldig.\n"
            f"Vul deze code in om je API key te ontvangen."
        )
        return await self.send(email, subject, html_body, text_body)

    async def send_api_key(self, email: str, api_key: str) -> bool:
        subject = "Je API key"
        html_body = self._jinja.get_template("api_key_issued.html").render(
            api_key=api_key
        )
        text_body = (
            f"Hier is je API key:\n\n{api_key}\n\n"
            f"Bewaar deze key goed. Je hebt deze nodig voor alle API calls."
        )
        return await self.send(email, subject, html_body, text_body)

    async def send_expiry_notice(self, email: str) -> bool:
        subject = "Je API key is verlopen – vraag een nieuwe aan"
        request_url = f"{self._settings.base_url.rstrip('/')}/api-key"
        html_body = self._jinja.get_template("api_key_expired.html").render(
            request_url=request_url
        )
        text_body = (
            "Je API key is verlopen omdat er langer dan 1 jaar geen API call "
            f"is gedaan.\n\nVraag een nieuwe API key aan via: {request_url}"
        )
        return await self.send(email, subject, html_body, text_body)
