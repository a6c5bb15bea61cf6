"""Client for the templated email HTTP API."""

import logging
from typing import Any, Dict, Optional

import httpx

from ..core.config import Settings, settings
from ..core.observability import metrics_collector

logger = logging.getLogger(__name__)

CONTACT_EMAIL = "contact@myowntour.com"
PARTNER_EMAIL = "partenaires@myowntour.com"


class EmailClient:
    """
    Sends templated emails.

    The API takes a template id and a flat parameter map. When the service id
    or public key is not configured, sends are simulated: logged and reported
    as successful. HTTP failures are logged and reported as ``False``; they
    never raise.
    """

    def __init__(self, config: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config or settings
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def configured(self) -> bool:
        return self.config.email_configured

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.email_timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def send_template(self, template_id: str, params: Dict[str, Any]) -> bool:
        """
        Send one templated email.

        Args:
            template_id: Template to render
            params: Template parameters; ``to_email`` names the recipient

        Returns:
            True when the API accepted the message or the send was simulated
        """
        if not self.configured:
            logger.info(
                "Email API not configured, simulating send",
                extra={"template_id": template_id, "to_email": params.get("to_email")}
            )
            metrics_collector.record_email("simulated")
            return True

        payload = {
            "service_id": self.config.email_service_id,
            "template_id": template_id,
            "user_id": self.config.email_public_key,
            "template_params": params,
        }

        try:
            response = await self._get_client().post(self.config.email_api_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(
                "Email send failed",
                extra={"template_id": template_id, "to_email": params.get("to_email"), "error": str(e)}
            )
            metrics_collector.record_email("failed")
            return False

        logger.info(
            "Email sent",
            extra={"template_id": template_id, "to_email": params.get("to_email")}
        )
        metrics_collector.record_email("sent")
        return True

    def _recipient(self, email: str, first_name: str, last_name: str) -> Dict[str, Any]:
        return {
            "to_email": email,
            "to_name": f"{first_name} {last_name}".strip(),
            "first_name": first_name,
            "last_name": last_name,
            "website_url": self.config.public_site_url,
        }

    async def send_welcome_client(self, email: str, first_name: str, last_name: str) -> bool:
        params = self._recipient(email, first_name, last_name)
        params.update({
            "subject": "Bienvenue sur Myowntour - Votre compte est activé !",
            "message": (
                f"Bonjour {params['to_name']} ! Votre compte client est actif. "
                "Vous pouvez dès maintenant réserver les plus belles excursions de Martinique."
            ),
            "contact_email": CONTACT_EMAIL,
        })
        return await self.send_template(self.config.email_template_welcome_client, params)

    async def send_welcome_guide(self, email: str, first_name: str, last_name: str) -> bool:
        params = self._recipient(email, first_name, last_name)
        params.update({
            "subject": "Bienvenue guide Myowntour - Votre compte est activé !",
            "message": (
                f"Bonjour {params['to_name']} ! Votre compte guide est actif. "
                "Complétez votre profil, créez vos excursions et définissez vos créneaux."
            ),
            "contact_email": PARTNER_EMAIL,
        })
        return await self.send_template(self.config.email_template_welcome_guide, params)

    async def send_welcome_tour_operator(self, email: str, first_name: str, last_name: str) -> bool:
        params = self._recipient(email, first_name, last_name)
        params.update({
            "subject": "Bienvenue tour-opérateur Myowntour - Votre compte est activé !",
            "message": (
                f"Bonjour {params['to_name']} ! Votre compte tour-opérateur est actif. "
                "Parcourez le catalogue et proposez nos excursions à vos clients."
            ),
            "contact_email": PARTNER_EMAIL,
        })
        return await self.send_template(self.config.email_template_welcome_operator, params)

    async def send_password_reset(self, email: str, reset_token: str) -> bool:
        reset_link = f"{self.config.public_site_url}/reset-password?token={reset_token}"
        params = {
            "to_email": email,
            "subject": "Réinitialisation de votre mot de passe Myowntour",
            "message": f"Pour choisir un nouveau mot de passe, ouvrez ce lien : {reset_link}",
            "reset_link": reset_link,
            "website_url": self.config.public_site_url,
            "contact_email": CONTACT_EMAIL,
        }
        return await self.send_template(self.config.email_template_password_reset, params)

    async def send_notification(self, email: str, name: str, title: str, message: str) -> bool:
        """Deliver a stored notification by email."""
        params = {
            "to_email": email,
            "to_name": name,
            "subject": title,
            "message": message,
            "website_url": self.config.public_site_url,
            "contact_email": CONTACT_EMAIL,
        }
        return await self.send_template(self.config.email_template_notification, params)
