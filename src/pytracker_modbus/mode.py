"""Mode toggle: set the remote Modbus service flags for a report mode via a GraphQL mutation.

The remote schema differs between controller firmware versions, so the request shape
is negotiated: the response selection shrinks when a queried field does not exist, and
input flags the server does not know are dropped from the payload. The toggle never
raises; it always returns a ToggleOutcome and report generation proceeds either way.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlsplit

import requests

from .errors import RemoteSchemaMismatch

logger = logging.getLogger(__name__)

MODE_MAP: dict[str, dict[str, bool]] = {
    "ttid": {"enableLegacyMode": False, "enableModbusSorting": False},
    "legacy-unsorted": {"enableLegacyMode": True, "enableModbusSorting": False},
    "legacy-sorted": {"enableLegacyMode": True, "enableModbusSorting": True},
}

# Most to least ambitious response selection
SELECTIONS: tuple[str, ...] = (
    "modbusService { enableModbusService enableModbusWrites enableModbusSorting enableLegacyMode }",
    "modbusService { enableModbusService enableModbusWrites }",
    "modbusService { __typename }",
    "__typename",
)

MAX_CYCLES = 6
OPERATION_NAME = "updateModbusServiceConfig"

_SELECTION_MISMATCH = re.compile(r"Cannot query field .* on type", re.IGNORECASE)
_INPUT_MISMATCH = (
    re.compile(r"Unknown (argument|field)", re.IGNORECASE),
    re.compile(r"Field .* is not defined", re.IGNORECASE),
)
# Quotes may arrive JSON-escaped when the errors array is serialized into the message
_REJECTED_NAME = (
    re.compile(r'Field \\?"(\w+)\\?" is not defined', re.IGNORECASE),
    re.compile(r'Unknown (?:argument|field) \\?"(\w+)\\?"', re.IGNORECASE),
)


def build_mutation(selection: str) -> str:
    return (
        "mutation updateModbusServiceConfig($modbusServiceConfigData: ModbusServiceConfigInput) {\n"
        "  updateModbusServiceConfig(configData: $modbusServiceConfigData) {\n"
        f"    {selection}\n"
        "  }\n"
        "}\n"
    )


def make_headers(
    url: str,
    access_token: str = "",
    xsrf_token: str = "",
    xsrf_cookie: str = "",
    cookie: str = "",
) -> dict[str, str]:
    """Request headers: JSON content type, XSRF token, joined cookie string and Referer."""
    headers = {"content-type": "application/json"}
    if xsrf_token:
        headers["x-xsrftoken"] = xsrf_token
    parts = []
    if xsrf_cookie:
        parts.append(f"_xsrf={xsrf_cookie}")
    if access_token:
        parts.append(f"access_token={access_token}")
    if cookie:
        parts.append(cookie)
    if parts:
        headers["cookie"] = "; ".join(parts)
    split = urlsplit(url)
    if split.scheme and split.netloc:
        headers["Referer"] = f"{split.scheme}://{split.netloc}/config-modbus"
    return headers


def scrub_unsupported_flags(flags: dict[str, bool], message: str) -> bool:
    """
    Remove the flags the server rejected from ``flags``; return True if any was removed.

    Quoted names in "is not defined" / "Unknown argument" errors select the flags to remove;
    the rest of the message may echo every input value. Without a quoted name, any flag
    mentioned in the message is removed.
    """
    named = {m.group(1).lower() for p in _REJECTED_NAME for m in p.finditer(message)}
    if named:
        rejected = [name for name in flags if name.lower() in named]
    else:
        rejected = [name for name in flags if re.search(re.escape(name), message, re.IGNORECASE)]
    for name in rejected:
        del flags[name]
    return bool(rejected)


class _State(Enum):
    TRYING_SELECTION = "trying_selection"
    REDUCING_PAYLOAD = "reducing_payload"
    END_OF_CYCLE = "end_of_cycle"


@dataclass
class ToggleOutcome:
    """Result of set_mode: applied, skipped (unsupported / exhausted / invalid mode)."""

    ok: bool
    skipped: bool = False
    reason: str = ""
    applied_flags: dict[str, bool] = field(default_factory=dict)
    selection: str | None = None
    response: Any = None
    attempts: int = 0


class _AttemptFailed(Exception):
    """One POST failed without telling us anything about the schema."""


class ModeToggleClient:
    """
    Posts updateModbusServiceConfig mutations with selection-set and payload fallback.

    State machine per set_mode call:
    TRYING_SELECTION(i) -> applied on success; -> TRYING_SELECTION(i+1) on a selection
    mismatch or any other failure; -> REDUCING_PAYLOAD when the server rejects a flag.
    REDUCING_PAYLOAD and an exhausted selection list both lead to END_OF_CYCLE, which
    skips when no flags remain, skips when MAX_CYCLES is reached, and otherwise restarts
    at TRYING_SELECTION(0).

    ``timeout`` is handed to requests unchanged, so it limits the connect and each socket
    read separately rather than the whole POST. A stalled attempt fails and the state
    machine moves on.
    """

    def __init__(
        self,
        url: str,
        *,
        access_token: str = "",
        xsrf_token: str = "",
        xsrf_cookie: str = "",
        cookie: str = "",
        timeout: float = 8.0,
        verify_tls: bool = False,
        session: requests.Session | None = None,
        max_cycles: int = MAX_CYCLES,
    ) -> None:
        self._url = url
        self._headers = make_headers(url, access_token, xsrf_token, xsrf_cookie, cookie)
        self._timeout = timeout
        self._verify = verify_tls
        self._session = session if session is not None else requests.Session()
        self._max_cycles = max_cycles

    def _post(self, flags: dict[str, bool], selection: str) -> Any:
        """POST one mutation; return the data node or raise RemoteSchemaMismatch / _AttemptFailed."""
        body = {
            "operationName": OPERATION_NAME,
            "query": build_mutation(selection),
            "variables": {"modbusServiceConfigData": dict(flags)},
        }
        logger.debug("POST %s selection=%r variables=%s", self._url, selection, body["variables"])
        try:
            resp = self._session.post(
                self._url,
                json=body,
                headers=self._headers,
                timeout=self._timeout,
                verify=self._verify,
            )
        except requests.RequestException as e:
            raise _AttemptFailed(f"Request failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            raise _AttemptFailed(f"Non-JSON response (status {resp.status_code}): {resp.text}") from None

        if not resp.ok:
            msg = f"HTTP {resp.status_code}: {resp.text}"
        elif isinstance(payload, dict) and payload.get("errors"):
            msg = f"GraphQL errors: {json.dumps(payload['errors'])}"
        else:
            return payload.get("data") if isinstance(payload, dict) else None

        if _SELECTION_MISMATCH.search(msg):
            raise RemoteSchemaMismatch(RemoteSchemaMismatch.SELECTION, msg)
        if any(p.search(msg) for p in _INPUT_MISMATCH):
            raise RemoteSchemaMismatch(RemoteSchemaMismatch.INPUT, msg)
        raise _AttemptFailed(msg)

    @staticmethod
    def _deepest_node(data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        node = data.get(OPERATION_NAME)
        if isinstance(node, dict) and node.get("modbusService") is not None:
            return node["modbusService"]
        return node if node is not None else data

    def set_flags(self, flags: dict[str, bool]) -> ToggleOutcome:
        """Send ``flags``, negotiating selection and payload. Never raises."""
        to_send = dict(flags)
        state = _State.TRYING_SELECTION
        shape = 0
        cycle = 0
        attempts = 0

        while True:
            if state is _State.TRYING_SELECTION:
                selection = SELECTIONS[shape]
                attempts += 1
                try:
                    data = self._post(to_send, selection)
                except RemoteSchemaMismatch as e:
                    if e.kind == RemoteSchemaMismatch.INPUT and scrub_unsupported_flags(to_send, str(e)):
                        logger.warning("Server rejected some flags; retrying with %s", to_send)
                        state = _State.REDUCING_PAYLOAD
                        continue
                    logger.debug("Selection %r rejected: %s", selection, e)
                except _AttemptFailed as e:
                    logger.warning("Mode update failed with selection %r: %s", selection, e)
                except Exception as e:
                    logger.warning("Mode update raised %s: %s", type(e).__name__, e)
                else:
                    logger.info("Mode update applied (selection %r)", selection)
                    return ToggleOutcome(
                        ok=True,
                        applied_flags=dict(to_send),
                        selection=selection,
                        response=self._deepest_node(data),
                        attempts=attempts,
                    )
                shape += 1
                if shape >= len(SELECTIONS):
                    state = _State.END_OF_CYCLE
            elif state is _State.REDUCING_PAYLOAD:
                state = _State.END_OF_CYCLE
            else:
                if not to_send:
                    logger.warning("No compatible flags remain; mode toggles unsupported on this server")
                    return ToggleOutcome(ok=False, skipped=True, reason="Unsupported flags", attempts=attempts)
                cycle += 1
                if cycle >= self._max_cycles:
                    return ToggleOutcome(
                        ok=False,
                        skipped=True,
                        reason="Exhausted retries",
                        applied_flags=dict(to_send),
                        attempts=attempts,
                    )
                shape = 0
                state = _State.TRYING_SELECTION

    def set_mode(self, mode: str) -> ToggleOutcome:
        """Apply the flag pair for ``mode`` (ttid, legacy-unsorted, legacy-sorted). Never raises."""
        flags = MODE_MAP.get(str(mode).lower())
        if flags is None:
            return ToggleOutcome(ok=False, skipped=True, reason=f'Invalid mode "{mode}"')
        logger.info(
            "Setting mode %s (legacy=%s, sorting=%s)",
            mode,
            flags["enableLegacyMode"],
            flags["enableModbusSorting"],
        )
        return self.set_flags(flags)


def set_modbus_mode(mode: str, url: str, **kwargs: Any) -> ToggleOutcome:
    """Convenience wrapper: build a ModeToggleClient for ``url`` and apply ``mode``."""
    return ModeToggleClient(url, **kwargs).set_mode(mode)
