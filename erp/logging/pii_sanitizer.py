"""PII sanitizer: masks personal data in log output.

Masks e-mails, CPF and CNPJ numbers and Brazilian phone numbers. Data in
PostgreSQL is left untouched.
"""

from __future__ import annotations

import re

# CNPJ: 12.345.678/0001-90 or 14 bare digits
_CNPJ_RE = re.compile(r"\b(\d{2})\.?(\d{3})\.?(\d{3})/?(\d{4})-?(\d{2})\b")

# CPF: 123.456.789-09 or 11 bare digits
_CPF_RE = re.compile(r"\b(\d{3})\.?(\d{3})\.?(\d{3})-?(\d{2})\b")

# +55 (11) 91234-5678, (11) 1234-5678, 11912345678
_PHONE_RE = re.compile(r"(\+?55\s?)?\(?(\d{2})\)?\s?(9?\d{4})[\s-]?(\d{4})\b")

_EMAIL_RE = re.compile(
    r"\b([a-zA-Z0-9._%+-])([a-zA-Z0-9._%+-]*)@([a-zA-Z0-9.-]+)\.([a-zA-Z]{2,})\b"
)


def sanitize_email(text: str) -> str:
    """Mask emails: user@example.com → u***@***.com."""

    def _mask(m: re.Match[str]) -> str:
        return f"{m.group(1)}***@***.{m.group(4)}"

    return _EMAIL_RE.sub(_mask, text)


def sanitize_cnpj(text: str) -> str:
    """Mask CNPJ: 12.345.678/0001-90 → 12.***.***/****-90."""

    def _mask(m: re.Match[str]) -> str:
        return f"{m.group(1)}.***.***/****-{m.group(5)}"

    return _CNPJ_RE.sub(_mask, text)


def sanitize_cpf(text: str) -> str:
    """Mask CPF: 123.456.789-09 → ***.***.***-09."""

    def _mask(m: re.Match[str]) -> str:
        return f"***.***.***-{m.group(4)}"

    return _CPF_RE.sub(_mask, text)


def sanitize_phone(text: str) -> str:
    """Mask phones: (11) 91234-5678 → (11) *****-5678."""

    def _mask(m: re.Match[str]) -> str:
        prefix = m.group(1) or ""
        return f"{prefix}({m.group(2)}) *****-{m.group(4)}"

    return _PHONE_RE.sub(_mask, text)


def sanitize_pii(text: str) -> str:
    """Sanitize all PII in text for logging."""
    text = sanitize_email(text)
    text = sanitize_cnpj(text)
    text = sanitize_cpf(text)
    text = sanitize_phone(text)
    return text
