"""
Error Message Sanitization for API Responses.

Error text that reaches clients may come from upstream LLM, email, SMS
or places APIs and can carry credentials or local paths. Everything the
router returns as ``detail`` passes through ``sanitize_error_message``;
the original message is only ever logged.

Usage:
    from src.morrow.agent.api.error_sanitizer import sanitize_error_message

    try:
        result = await context.run_brain(prompt)
    except ProviderError as e:
        logger.error(f"Provider failure: {e}")
        raise HTTPException(502, detail=sanitize_error_message(str(e)))
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional


@dataclass
class SanitizationResult:
    """Result of sanitizing an error message.

    Attributes:
        sanitized_message: Message safe for client exposure
        redaction_count: Number of redactions applied
        original_length: Length before sanitization
    """

    sanitized_message: str
    redaction_count: int
    original_length: int

    @property
    def was_sanitized(self) -> bool:
        return self.redaction_count > 0


class ErrorSanitizer:
    """Regex-based redaction of secrets and system details.

    Attributes:
        patterns: List of (regex_pattern, replacement) tuples
        max_message_length: Maximum length of sanitized messages
    """

    # Order matters - more specific patterns first
    DEFAULT_PATTERNS: list[tuple[str, str]] = [
        # URLs carrying credentials
        (r'[a-z][a-z0-9+.\-]*://[^\s/:@]+:[^\s/@]+@[^\s]+', '[CREDENTIALED_URL]'),

        # Environment variable names (before the key patterns that contain them)
        (
            r'\b(OPENAI_API_KEY|ANTHROPIC_API_KEY|SENDGRID_API_KEY|TWILIO_SID|TWILIO_TOKEN'
            r'|GOOGLE_PLACES_API_KEY|MORROW_ADMIN_TOKEN)\b',
            '[ENV_VAR]',
        ),

        # Authentication tokens and keys
        (r'bearer\s+[A-Za-z0-9_\-\.]+', 'Bearer [REDACTED]'),
        (r'authorization[:\s]+[^\s\n]+', 'Authorization: [REDACTED]'),
        (r'api[-_]?key[=:\s]+[^\s\n,;]+', 'api_key=[REDACTED]'),
        (r'access[-_]?token[=:\s]+[^\s\n,;]+', 'access_token=[REDACTED]'),
        (r'auth[-_]?token[=:\s]+[^\s\n,;]+', 'auth_token=[REDACTED]'),
        (r'admin[-_]?token[=:\s]+[^\s\n,;]+', 'admin_token=[REDACTED]'),
        (r'[?&]key=[^\s&]+', '?key=[REDACTED]'),
        (r'\bsk-(?:ant-)?[A-Za-z0-9_\-]{16,}', '[API_KEY]'),
        (r'\bSG\.[A-Za-z0-9_\-]{16,}\.[A-Za-z0-9_\-]{16,}', '[API_KEY]'),
        (r'\bAC[0-9a-f]{32}\b', '[ACCOUNT_SID]'),

        # Passwords and secrets
        (r'password[=:\s]+[^\s\n,;]+', 'password=[REDACTED]'),
        (r'secret[=:\s]+[^\s\n,;]+', 'secret=[REDACTED]'),

        # File paths (Unix and Windows)
        (r'/(?:home|root|usr|var|etc|opt|mnt|tmp)/[^\s\n,;]+', '[FILE_PATH]'),
        (r'[A-Z]:\\[^\s\n,;]+', '[FILE_PATH]'),

        # Stack traces (Python)
        (r'Traceback \(most recent call last\):[\s\S]*?(?=\n\n|\n[A-Z]|\Z)', '[STACK_TRACE]'),
        (r'File "([^"]+)", line \d+', 'File "[REDACTED]", line [REDACTED]'),

        # JWT tokens
        (r'\beyJ[A-Za-z0-9_-]*\.eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\b', '[JWT_REDACTED]'),
    ]

    def __init__(
        self,
        patterns: Optional[list[tuple[str, str]]] = None,
        max_message_length: int = 500,
    ):
        self.patterns = list(patterns or self.DEFAULT_PATTERNS)
        self.max_message_length = max_message_length
        self._compiled_patterns = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in self.patterns
        ]

    def sanitize(self, message: str, error_type: Optional[str] = None) -> SanitizationResult:
        """Sanitize error message for safe client exposure.

        Args:
            message: Raw error message
            error_type: Optional prefix such as "Provider error"

        Returns:
            SanitizationResult with sanitized message
        """
        if not message:
            return SanitizationResult("An error occurred", 0, 0)

        sanitized = message
        redaction_count = 0
        for pattern, replacement in self._compiled_patterns:
            sanitized, count = pattern.subn(replacement, sanitized)
            redaction_count += count

        if len(sanitized) > self.max_message_length:
            sanitized = sanitized[: self.max_message_length] + "... [TRUNCATED]"
        if not sanitized.strip():
            sanitized = "An error occurred"
        if error_type and not sanitized.startswith(error_type):
            sanitized = f"{error_type}: {sanitized}"

        return SanitizationResult(sanitized, redaction_count, len(message))

    def is_safe(self, message: str) -> bool:
        """True if no pattern would redact anything in ``message``."""
        return not any(pattern.search(message) for pattern, _ in self._compiled_patterns)


_default_sanitizer: Optional[ErrorSanitizer] = None


def get_sanitizer() -> ErrorSanitizer:
    """Get the default error sanitizer instance."""
    global _default_sanitizer
    if _default_sanitizer is None:
        _default_sanitizer = ErrorSanitizer()
    return _default_sanitizer


def sanitize_error_message(message: str, error_type: Optional[str] = None) -> str:
    """Convenience function to sanitize error messages.

    Example:
        >>> sanitize_error_message("OpenAI rejected key sk-abcdefghijklmnopqrstu")
        'OpenAI rejected key [API_KEY]'
    """
    return get_sanitizer().sanitize(message, error_type).sanitized_message
