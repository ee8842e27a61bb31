import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import List

from app.core.config import settings

logger = logging.getLogger("library.email")


@dataclass
class Message:
    to: List[str]
    subject: str
    content: str


class EmailService:
    def __init__(self, host=None, port=587, user=None, password=None, sender="no-reply@library.local"):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender

    def send(self, message: Message) -> None:
        if not self.host:
            logger.info(f"Mail to {', '.join(message.to)} [{message.subject}]: {message.content}")
            return
        mail = EmailMessage()
        mail["From"] = self.sender
        mail["To"] = ", ".join(message.to)
        mail["Subject"] = message.subject
        mail.set_content(message.content)
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password or "")
            smtp.send_message(mail)
        logger.info(f"Sent '{message.subject}' to {', '.join(message.to)}")


def get_email_service() -> EmailService:
    return EmailService(settings.smtp_host, settings.smtp_port, settings.smtp_user,
                        settings.smtp_password, settings.smtp_sender)
