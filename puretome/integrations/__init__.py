"""Third-party integrations: outbound email and error tracking."""

from puretome.integrations.email import EmailService, TEMPLATES
from puretome.integrations.sentry import init_sentry

__all__ = [
    "EmailService",
    "TEMPLATES",
    "init_sentry",
]
