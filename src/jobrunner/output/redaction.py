"""Environment redaction for run reports."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from jobrunner.core.config import RedactionRules

# Values shorter than this are too short to reveal their first/last character
MIN_LEN_FOR_CENSOR_HINT = 5


def censor_value(value: str) -> str:
    """Obscure a sensitive value, hinting only at its length and edges.

    >>> censor_value("abcd")
    '[4 chars]'
    >>> censor_value("hunter22")
    'h[6 chars]2'
    """
    if len(value) < MIN_LEN_FOR_CENSOR_HINT:
        return f"[{len(value)} chars]"
    return f"{value[0]}[{len(value) - 2} chars]{value[-1]}"


def redact_environment(
    environ: Mapping[str, str],
    rules: RedactionRules,
) -> Iterator[tuple[str, str]]:
    """Yield (name, display value) pairs in the order given.

    Hidden variables are skipped; censored ones have their value replaced.
    """
    for name, value in environ.items():
        if rules.is_hidden(name):
            continue
        if rules.is_censored(name):
            yield name, censor_value(value)
        else:
            yield name, value
