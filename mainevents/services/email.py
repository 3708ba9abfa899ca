"""
Transactional email.

Bodies are rendered from the HTML templates in ``mainevents/templates/email``
(one per notification type, ``default.html`` otherwise) and delivered through
fastapi-mail. Without SMTP credentials the sender only logs what it would have
sent.
"""

import asyncio
from datetime import datetime
from pathlib import Path

import structlog
from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType
from jinja2 import Environment, FileSystemLoader, select_autoescape

from mainevents.core import config

logger = structlog.get_logger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"


def _as_datetime(value):
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def fecha(value) -> str:
    value = _as_datetime(value)
    return value.strftime("%d/%m/%Y") if value else ""


def hora(value) -> str:
    value = _as_datetime(value)
    return value.strftime("%H:%M") if value else ""


def build_environment(template_dir: Path = TEMPLATE_DIR) -> Environment:
    env = Environment(loader=FileSystemLoader(str(template_dir)), autoescape=select_autoescape(["html"]))
    env.filters["fecha"] = fecha
    env.filters["hora"] = hora
    return env


class EmailSender:
    """Renders per-type HTML templates and sends them over SMTP with fastapi-mail."""

    def __init__(
        self,
        host: str,
        port: int,
        user: str = "",
        password: str = "",
        sender: str = "",
        sender_name: str = "MainEvents",
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.sender_name = sender_name
        self.templates = build_environment()
        self.logger = logger.bind(component="email_sender")
        self._mailer: FastMail | None = None

    @classmethod
    def from_config(cls) -> "EmailSender":
        return cls(config.EMAIL_HOST, config.EMAIL_PORT, config.EMAIL_USER, config.EMAIL_PASS, config.EMAIL_FROM)

    @property
    def enabled(self) -> bool:
        return bool(self.user and self.password)

    @property
    def mailer(self) -> FastMail:
        if self._mailer is None:
            self._mailer = FastMail(
                ConnectionConfig(
                    MAIL_USERNAME=self.user,
                    MAIL_PASSWORD=self.password,
                    MAIL_FROM=self.sender,
                    MAIL_FROM_NAME=self.sender_name,
                    MAIL_PORT=self.port,
                    MAIL_SERVER=self.host,
                    MAIL_STARTTLS=True,
                    MAIL_SSL_TLS=False,
                    USE_CREDENTIALS=True,
                )
            )
        return self._mailer

    def render(self, template: str, context: dict) -> str:
        return self.templates.select_template([f"{template}.html", "default.html"]).render(**context)

    def send(self, to: str, subject: str, template: str, context: dict | None = None) -> bool:
        context = context or {}
        if not self.enabled:
            self.logger.info("Email delivery disabled, skipping", to=to, template=template)
            return False

        message = MessageSchema(
            subject=subject,
            recipients=[to],
            body=self.render(template, context),
            subtype=MessageType.html,
        )
        # Called from sync request handlers and Celery workers, never inside a running loop
        asyncio.run(self.mailer.send_message(message))

        self.logger.info("Email sent", to=to, template=template)
        return True
