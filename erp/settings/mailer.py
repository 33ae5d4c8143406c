"""SMTP connection test using a tenant's own notification settings."""

from __future__ import annotations

import logging
from datetime import date
from email.message import EmailMessage

import aiosmtplib

from erp.config import get_settings
from erp.permissions.errors import InvalidRequest
from erp.settings.documents import NotificationSettings

logger = logging.getLogger(__name__)

_IMPLICIT_TLS_PORT = 465


def build_test_message(
    smtp: NotificationSettings, company_name: str, recipient: str
) -> EmailMessage:
    sender_name = company_name or get_settings().mail.sender_name
    sender_address = smtp.smtp_from or smtp.smtp_user
    today = date.today().strftime("%d/%m/%Y")

    msg = EmailMessage()
    msg["From"] = f"{sender_name} <{sender_address}>"
    msg["To"] = recipient
    msg["Subject"] = "Teste de conexão SMTP"
    msg.set_content(
        "Seu e-mail está autorizado para enviar as notificações do sistema.\n\n"
        "Configuração utilizada:\n"
        f"Servidor: {smtp.smtp_host}\n"
        f"Porta: {smtp.smtp_port}\n"
        f"Usuário: {smtp.smtp_user}\n\n"
        "Este é um e-mail de teste enviado automaticamente.\n"
        f"{sender_name} • {today}"
    )
    return msg


def _describe_failure(exc: Exception) -> str:
    if isinstance(exc, aiosmtplib.SMTPAuthenticationError):
        return "Authentication failed. Check the SMTP user and password."
    if isinstance(exc, (aiosmtplib.SMTPConnectTimeoutError, aiosmtplib.SMTPTimeoutError)):
        return "Connection timed out. Check the SMTP host and port."
    if isinstance(exc, (aiosmtplib.SMTPConnectError, ConnectionRefusedError)):
        return "Connection refused. Check the SMTP host and port."
    return str(exc) or "Could not connect to the SMTP server."


async def send_test_email(smtp: NotificationSettings, company_name: str, recipient: str) -> None:
    """Send one test message. Raises InvalidRequest when the server rejects us."""
    if not smtp.smtp_host or not smtp.smtp_user or not smtp.smtp_password:
        msg = "Configure the SMTP host, user and password before testing the connection"
        raise InvalidRequest(msg)

    implicit_tls = smtp.smtp_port == _IMPLICIT_TLS_PORT
    message = build_test_message(smtp, company_name, recipient)

    try:
        await aiosmtplib.send(
            message,
            hostname=smtp.smtp_host,
            port=smtp.smtp_port,
            username=smtp.smtp_user,
            password=smtp.smtp_password,
            use_tls=implicit_tls,
            start_tls=None if implicit_tls else True,
            validate_certs=implicit_tls,
            timeout=get_settings().mail.timeout,
        )
    except (aiosmtplib.SMTPException, OSError) as exc:
        logger.warning("SMTP test failed for host %s: %s", smtp.smtp_host, exc)
        raise InvalidRequest(_describe_failure(exc)) from exc

    logger.info("SMTP test e-mail sent via %s:%d", smtp.smtp_host, smtp.smtp_port)
