# =============================================================================
# Email Delivery Integration (AWS SES)
# =============================================================================
#
# Setup:
#   1. Verify your sending email in AWS SES console
#   2. Set env vars:
#      - AWS_SES_FROM_EMAIL=noreply@yourdomain.com
#      - AWS_ACCESS_KEY_ID=...
#      - AWS_SECRET_ACCESS_KEY=...
#      - AWS_REGION=us-east-1
#
# The service is built once at startup and handed to whatever needs to send
# mail (invitation manager, user service).
#
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from html import escape
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from puretome.config import Settings

logger = logging.getLogger(__name__)


# =============================================================================
# Email Templates
# =============================================================================

TEMPLATES = {
    "collaborator_invitation": {
        "subject": "Invitation to collaborate on memoir: {memoir_title}",
        "html": """
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <p>Hello,</p>
            <p>You have been invited by <strong>{author_name}</strong> to collaborate on the memoir "<strong>{memoir_title}</strong>" as {role}.</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{accept_url}" style="background: #4A90A4; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; display: inline-block;">
                    Respond to the invitation
                </a>
            </p>
            <p style="color: #666; font-size: 14px;">This invitation expires in {expire_days} days.</p>
            <p style="color: #666; font-size: 14px;">If you did not expect this invitation, please ignore this email.</p>
            <p>Thanks,<br/>The PureTome Team</p>
        </body>
        </html>
        """,
        "text": """
Hello,

You have been invited by {author_name} to collaborate on the memoir "{memoir_title}" as {role}.

Respond here: {accept_url}

This invitation expires in {expire_days} days.
If you did not expect this invitation, please ignore this email.

Thanks,
The PureTome Team
        """,
    },

    "password_reset": {
        "subject": "Reset your PureTome password",
        "html": """
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="color: #333;">Reset Your Password</h1>
            <p>We received a request to reset your password. Click the button below to choose a new one:</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{reset_url}" style="background: #4A90A4; color: white; padding: 12px 30px; text-decoration: none; border-radius: 6px; display: inline-block;">
                    Reset Password
                </a>
            </p>
            <p style="color: #666; font-size: 14px;">This link expires in {expire_hours} hour(s).</p>
            <p style="color: #666; font-size: 14px;">If you didn't request this, you can safely ignore this email.</p>
        </body>
        </html>
        """,
        "text": """
Reset Your Password

We received a request to reset your password. Visit this link to choose a new one:
{reset_url}

This link expires in {expire_hours} hour(s).

If you didn't request this, you can safely ignore this email.
        """,
    },

    "welcome": {
        "subject": "Welcome to PureTome!",
        "html": """
        <html>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1 style="color: #333;">Welcome to PureTome, {name}!</h1>
            <p>Your account is ready. Start writing at <a href="{app_url}">{app_url}</a>.</p>
        </body>
        </html>
        """,
        "text": """
Welcome to PureTome, {name}!

Your account is ready. Start writing at {app_url}
        """,
    },
}


def _escaped(data: dict[str, Any]) -> dict[str, Any]:
    """Template values made safe for the HTML part (titles and names are user input)."""
    return {k: escape(v) if isinstance(v, str) else v for k, v in data.items()}


# =============================================================================
# Email Service
# =============================================================================


class EmailService:
    """Send emails via AWS SES."""

    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        self._client = client

    @property
    def client(self):
        """Lazy-load SES client."""
        if self._client is None and self.settings.use_aws:
            self._client = boto3.client(
                "ses",
                region_name=self.settings.aws_region,
                aws_access_key_id=self.settings.aws_access_key_id,
                aws_secret_access_key=self.settings.aws_secret_access_key,
            )
        return self._client

    @property
    def is_configured(self) -> bool:
        """Check if email sending is properly configured."""
        return self._client is not None or (
            self.settings.use_aws and bool(self.settings.aws_ses_from_email)
        )

    async def send(
        self,
        to: str,
        template: str,
        data: dict[str, Any] | None = None,
        subject_override: str | None = None,
    ) -> bool:
        """
        Send an email using a template.

        Args:
            to: Recipient email address
            template: Template name (e.g., "collaborator_invitation")
            data: Template variables to substitute
            subject_override: Override the template's subject

        Returns:
            True if sent successfully, False otherwise
        """
        if template not in TEMPLATES:
            logger.error(f"Unknown email template: {template}")
            return False

        tpl = TEMPLATES[template]
        data = data or {}

        if not self.is_configured:
            logger.warning(f"Email not configured - would send '{template}' to {to}")
            logger.info(f"Email content: {tpl['text'].format(**data)}")
            return False

        try:
            subject = subject_override or tpl["subject"].format(**data)
            html_body = tpl["html"].format(**_escaped(data))
            text_body = tpl["text"].format(**data)

            response = await asyncio.to_thread(
                self.client.send_email,
                Source=self.settings.aws_ses_from_email,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": html_body, "Charset": "UTF-8"},
                        "Text": {"Data": text_body, "Charset": "UTF-8"},
                    },
                },
            )

            logger.info(f"Email sent to {to}: {template} (MessageId: {response['MessageId']})")
            return True

        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False
        except KeyError as e:
            logger.error(f"Missing template variable for '{template}': {e}")
            return False

    async def send_invitation(
        self,
        email: str,
        memoir_title: str,
        author_name: str,
        memoir_id: str,
        token: str,
        role: str,
    ) -> bool:
        """Send a collaborator invitation with the accept link."""
        accept_url = f"{self.settings.frontend_url}/invite/{memoir_id}?token={token}"
        return await self.send(
            to=email,
            template="collaborator_invitation",
            data={
                "memoir_title": memoir_title,
                "author_name": author_name,
                "accept_url": accept_url,
                "role": role,
                "expire_days": self.settings.invitation_expire_days,
            },
        )

    async def send_password_reset(self, email: str, reset_token: str) -> bool:
        """Send password reset email."""
        reset_url = f"{self.settings.frontend_url}/reset-password?token={reset_token}"
        return await self.send(
            to=email,
            template="password_reset",
            data={
                "reset_url": reset_url,
                "expire_hours": self.settings.password_reset_expire_hours,
            },
        )

    async def send_welcome(self, email: str, name: str) -> bool:
        """Send welcome email after registration."""
        return await self.send(
            to=email,
            template="welcome",
            data={"name": name or email, "app_url": self.settings.frontend_url},
        )
