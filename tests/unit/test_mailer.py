"""Unit tests for the SMTP connection test mailer."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import pytest

from erp.permissions.errors import InvalidRequest
from erp.settings.documents import NotificationSettings
from erp.settings.mailer import build_test_message, send_test_email


def _smtp(**overrides: object) -> NotificationSettings:
    data: dict[str, object] = {
        "smtp_host": "smtp.loja.com.br",
        "smtp_port": 587,
        "smtp_user": "avisos@loja.com.br",
        "smtp_password": "s3cret",
        "smtp_from": "",
    }
    data.update(overrides)
    return NotificationSettings.model_validate(data)


def _settings() -> MagicMock:
    settings = MagicMock()
    settings.mail.sender_name = "SmartFlux ERP"
    settings.mail.timeout = 15
    return settings


class TestBuildMessage:
    @patch("erp.settings.mailer.get_settings")
    def test_headers(self, mock_settings: MagicMock) -> None:
        mock_settings.return_value = _settings()
        msg = build_test_message(_smtp(), "Loja Centro", "dono@loja.com.br")
        assert msg["To"] == "dono@loja.com.br"
        assert msg["From"] == "Loja Centro <avisos@loja.com.br>"
        assert "smtp.loja.com.br" in msg.get_content()

    @patch("erp.settings.mailer.get_settings")
    def test_sender_name_fallback_and_from_address(self, mock_settings: MagicMock) -> None:
        mock_settings.return_value = _settings()
        msg = build_test_message(_smtp(smtp_from="nao-responda@loja.com.br"), "", "a@b.com")
        assert msg["From"] == "SmartFlux ERP <nao-responda@loja.com.br>"


class TestSendTestEmail:
    @pytest.mark.asyncio
    @patch("erp.settings.mailer.aiosmtplib.send", new_callable=AsyncMock)
    @patch("erp.settings.mailer.get_settings")
    async def test_starttls_on_submission_port(
        self, mock_settings: MagicMock, mock_send: AsyncMock
    ) -> None:
        mock_settings.return_value = _settings()
        await send_test_email(_smtp(), "Loja", "dono@loja.com.br")

        mock_send.assert_called_once()
        kwargs = mock_send.call_args.kwargs
        assert kwargs["hostname"] == "smtp.loja.com.br"
        assert kwargs["use_tls"] is False
        assert kwargs["start_tls"] is True
        assert kwargs["timeout"] == 15

    @pytest.mark.asyncio
    @patch("erp.settings.mailer.aiosmtplib.send", new_callable=AsyncMock)
    @patch("erp.settings.mailer.get_settings")
    async def test_implicit_tls_on_465(
        self, mock_settings: MagicMock, mock_send: AsyncMock
    ) -> None:
        mock_settings.return_value = _settings()
        await send_test_email(_smtp(smtp_port=465), "Loja", "dono@loja.com.br")

        kwargs = mock_send.call_args.kwargs
        assert kwargs["use_tls"] is True
        assert kwargs["start_tls"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["smtp_host", "smtp_user", "smtp_password"])
    @patch("erp.settings.mailer.aiosmtplib.send", new_callable=AsyncMock)
    async def test_incomplete_config(self, mock_send: AsyncMock, missing: str) -> None:
        with pytest.raises(InvalidRequest):
            await send_test_email(_smtp(**{missing: ""}), "Loja", "dono@loja.com.br")
        mock_send.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (aiosmtplib.SMTPAuthenticationError(535, "bad credentials"), "Authentication failed"),
            (aiosmtplib.SMTPConnectTimeoutError("timed out"), "timed out"),
            (aiosmtplib.SMTPConnectError("refused"), "Connection refused"),
            (ConnectionRefusedError(111, "refused"), "refused"),
        ],
    )
    @patch("erp.settings.mailer.aiosmtplib.send", new_callable=AsyncMock)
    @patch("erp.settings.mailer.get_settings")
    async def test_failures_become_invalid_request(
        self,
        mock_settings: MagicMock,
        mock_send: AsyncMock,
        error: Exception,
        expected: str,
    ) -> None:
        mock_settings.return_value = _settings()
        mock_send.side_effect = error
        with pytest.raises(InvalidRequest, match=expected):
            await send_test_email(_smtp(), "Loja", "dono@loja.com.br")
