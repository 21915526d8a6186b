# backend/utils/email_client.py
import httpx
import logging
from typing import List, Optional
from urllib.parse import urljoin
from config import settings
from utils.errors import ExternalServiceError

logger = logging.getLogger(__name__)

class ResendClient:
    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None, sender: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.api_url = api_url or settings.RESEND_API_URL
        self.sender = sender or settings.EMAIL_FROM

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send_email(self, to: List[str], subject: str, html: str) -> dict:
        # Submit a single transactional email
        url = urljoin(self.api_url, "/emails")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        payload = {"from": self.sender, "to": to, "subject": subject, "html": html}
        async with httpx.AsyncClient(timeout=15) as client:
            try:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                return response.json()
            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                try:
                    resp_text = e.response.text if getattr(e, "response", None) is not None else str(e)
                except Exception:
                    resp_text = str(e)
                logger.error(f"Resend send error: {resp_text}")
                raise ExternalServiceError("Failed to send email") from e

email_client = ResendClient()
