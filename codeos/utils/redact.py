"""Secret redaction for text written to artifacts.

Command and gate output lands in ``.codeos/`` and is often committed or
attached to pull requests. Before it is written, the values of well-known
credential environment variables are replaced by ``[REDACTED:<KEY>]``.

Example:
    >>> os.environ["GITHUB_TOKEN"] = "ghp_abc123"
    >>> redact_secrets("token=ghp_abc123")
    'token=[REDACTED:GITHUB_TOKEN]'
"""

import os
from collections.abc import Iterable, Mapping

DEFAULT_DENYLIST = (
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "GITHUB_TOKEN",
    "GH_TOKEN",
    "AWS_SECRET_ACCESS_KEY",
    "AZURE_OPENAI_KEY",
)


def redact_secrets(
    text: str,
    extra_keys: Iterable[str] = (),
    environ: Mapping[str, str] | None = None,
) -> str:
    """Replace the values of secret environment variables in ``text``.

    Args:
        text: Text to redact
        extra_keys: Additional variable names to treat as secret
        environ: Environment to read values from (defaults to ``os.environ``)

    Returns:
        The text with every non-empty secret value replaced
    """
    env = os.environ if environ is None else environ
    keys = dict.fromkeys([*DEFAULT_DENYLIST, *extra_keys])

    for key in keys:
        value = env.get(key)
        if not value:
            continue
        text = text.replace(value, f"[REDACTED:{key}]")
    return text
