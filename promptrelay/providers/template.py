"""
Turns a copy-pasted ``curl`` command into a RequestDescriptor without running anything.

The command line is tokenized with POSIX shell quoting rules and then walked flag by
flag. Only the parts of curl that describe the request itself (method, url, headers,
body) are understood; transfer switches such as ``-s`` or ``--compressed`` are accepted
and ignored.
"""

import base64
import json
import logging
import re
import shlex
from typing import Dict, List, Optional, Tuple

from promptrelay.providers.base import TemplateParseError
from promptrelay.schemas.chat import RequestDescriptor

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

SYSTEM_PROMPT = "SYSTEM_PROMPT"
TEXT = "TEXT"
IMAGE = "IMAGE"
RESERVED_VARIABLES = frozenset({SYSTEM_PROMPT, TEXT, IMAGE})


def extract_variables(template: str) -> List[str]:
    # distinct names, upper-cased, first occurrence wins the position
    seen: Dict[str, None] = {}
    for match in PLACEHOLDER.finditer(template or ""):
        seen.setdefault(match.group(1).upper(), None)
    return list(seen)


def required_variables(template: str) -> List[str]:
    return [name for name in extract_variables(template) if name not in RESERVED_VARIABLES]


def references_image(template: str) -> bool:
    return IMAGE in extract_variables(template)


# flags that consume the next token (or an attached value)
_HEADER_FLAGS = {"-H", "--header"}
_DATA_FLAGS = {"-d", "--data", "--data-raw", "--data-binary", "--data-ascii", "--data-urlencode"}
_VALUE_FLAGS = (
    {"-X", "--request", "--url", "--json", "-u", "--user", "-A", "--user-agent",
     "-e", "--referer", "-b", "--cookie", "-o", "--output", "-m", "--max-time",
     "--connect-timeout", "-x", "--proxy", "--retry", "-w", "--write-out"}
    | _HEADER_FLAGS
    | _DATA_FLAGS
)
_SWITCHES = {
    "-s", "--silent", "-S", "--show-error", "-L", "--location", "-k", "--insecure",
    "-N", "--no-buffer", "-v", "--verbose", "-i", "--include", "-f", "--fail",
    "-G", "--get", "--compressed", "--http1.1", "--http2", "-#", "--progress-bar",
}
_SHORT_SWITCH_CHARS = {flag[1] for flag in _SWITCHES if len(flag) == 2}


def _tokenize(template: str) -> List[str]:
    # shell line continuations are just whitespace for our purposes
    joined = re.sub(r"\\\r?\n", " ", template or "")
    try:
        tokens = shlex.split(joined, posix=True)
    except ValueError as e:
        raise TemplateParseError(str(e)) from e
    if not tokens:
        raise TemplateParseError("template is empty")
    if tokens[0].rsplit("/", 1)[-1] not in {"curl", "curl.exe"}:
        raise TemplateParseError(f"expected a curl command, got {tokens[0]!r}")
    return tokens[1:]


def _split_flag(token: str) -> Tuple[Optional[str], Optional[str], str]:
    """
    Separate an attached value and any leading bundled switches.

    ``--data=x`` -> ("--data", "x", ""), ``-XPOST`` -> ("-X", "POST", ""),
    ``-sSL`` -> (None, None, "sSL"), ``-sX`` -> ("-X", None, "s").
    """
    if token.startswith("--"):
        name, eq, value = token.partition("=")
        return name, (value if eq else None), ""
    switches = ""
    for pos, ch in enumerate(token[1:], start=1):
        if f"-{ch}" in _VALUE_FLAGS:
            # the rest of the token is the value, otherwise the next token is
            return f"-{ch}", token[pos + 1:] or None, switches
        if ch not in _SHORT_SWITCH_CHARS:
            return token, None, ""
        switches += ch
    return None, None, switches


def _parse_header(raw: str) -> Tuple[str, str]:
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise TemplateParseError(f"malformed header {raw!r}")
    return name.strip(), value.strip()


def _parse_body(data: List[str]):
    if not data:
        return None
    raw = "&".join(data)
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        # non-JSON payloads travel as text; placeholders are still replaced in the string
        return raw


def parse_curl(template: str) -> RequestDescriptor:
    tokens = _tokenize(template)
    method: Optional[str] = None
    url: Optional[str] = None
    use_get = False
    headers: Dict[str, str] = {}
    data: List[str] = []

    i = 0
    while i < len(tokens):
        token = tokens[i]
        i += 1
        if not token.startswith("-"):
            if url is not None:
                raise TemplateParseError(f"unexpected argument {token!r}")
            url = token
            continue

        flag, value, switches = _split_flag(token)
        use_get = use_get or "G" in switches
        if flag is None:
            continue
        if flag == "--get":
            use_get = True
            continue
        if flag in _SWITCHES:
            continue

        if flag not in _VALUE_FLAGS:
            if flag.startswith(("--data", "--header", "--json")):
                raise TemplateParseError(f"unknown option {flag!r}")
            logger.debug("ignoring unsupported curl option %s", flag)
            continue

        if value is None:
            if i >= len(tokens):
                raise TemplateParseError(f"option {flag} requires a value")
            value = tokens[i]
            i += 1

        if flag in ("-X", "--request"):
            method = value.upper()
        elif flag == "--url":
            url = value
        elif flag in _HEADER_FLAGS:
            name, header_value = _parse_header(value)
            headers[name] = header_value
        elif flag in _DATA_FLAGS:
            data.append(value)
        elif flag == "--json":
            data.append(value)
            headers.setdefault("Content-Type", "application/json")
            headers.setdefault("Accept", "application/json")
        elif flag in ("-u", "--user"):
            token_bytes = base64.b64encode(value.encode("utf-8")).decode("ascii")
            headers["Authorization"] = f"Basic {token_bytes}"
        elif flag in ("-A", "--user-agent"):
            headers["User-Agent"] = value
        elif flag in ("-e", "--referer"):
            headers["Referer"] = value
        elif flag in ("-b", "--cookie"):
            headers["Cookie"] = value
        # everything else (output, timeouts, proxy...) does not shape the request

    if not url:
        raise TemplateParseError("no URL specified")

    body = _parse_body(data)
    if use_get and method is None:
        if data:
            url = f"{url}{'&' if '?' in url else '?'}{'&'.join(data)}"
        body = None
        method = "GET"

    return RequestDescriptor(method=method or "POST", url=url, headers=headers, body=body)
