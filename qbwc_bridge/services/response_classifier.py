"""
Classify what QuickBooks returned for a request.

Only the status attributes and a few identifier fields of a QBXML response
matter here, so the checks are plain pattern matches on the body.
"""
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

ERROR_SEVERITY_MARKER = 'statusSeverity="Error"'
# Opening tag of the response element that carries the error status
_ERROR_TAG_RE = re.compile(r'<[^<>]*\bstatusSeverity="Error"[^<>]*>')
_STATUS_CODE_RE = re.compile(r'statusCode="(\d+)"')
_STATUS_MESSAGE_RE = re.compile(r'statusMessage="([^"]+)"')

IDENTIFIER_FIELDS = ("ListID", "TxnID", "RefNumber")


@dataclass(frozen=True)
class Classification:
    ok: bool
    message: str = ""
    result: Optional[Dict[str, Any]] = None


def _get_xml_text(element: Optional[ET.Element], default: Optional[str] = None) -> Optional[str]:
    """Safely get text from an XML element."""
    if element is not None and element.text is not None:
        return element.text.strip()
    return default


def extract_identifiers(response: str) -> Dict[str, str]:
    """
    Pull the first ListID, TxnID and RefNumber out of a response body.

    Uses ElementTree when the body parses; falls back to tag matching for
    bodies QuickBooks truncated or mangled.
    """
    identifiers: Dict[str, str] = {}
    if not response:
        return identifiers

    try:
        root = ET.fromstring(response)
    except ET.ParseError as e:
        logger.debug(f"Response is not well-formed XML ({e}); falling back to tag matching")
        for tag in IDENTIFIER_FIELDS:
            match = re.search(rf"<{tag}>([^<]+)</{tag}>", response)
            if match:
                identifiers[tag] = match.group(1).strip()
        return identifiers

    for tag in IDENTIFIER_FIELDS:
        value = _get_xml_text(root.find(f'.//{tag}'))
        if value:
            identifiers[tag] = value
    return identifiers


def classify_response(response, hresult=None, message=None) -> Classification:
    """
    Decide whether a receiveResponseXML call reports success or failure.

    Precedence: an upstream HRESULT wins, then an error-severity status in
    the body, otherwise the body is the result.
    """
    if hresult and str(hresult).strip():
        return Classification(
            ok=False,
            message=f"QB Error {str(hresult).strip()}: {message or 'Unknown error'}",
        )

    body = response or ""
    if ERROR_SEVERITY_MARKER in body:
        tag_match = _ERROR_TAG_RE.search(body)
        region = tag_match.group(0) if tag_match else body
        code_match = _STATUS_CODE_RE.search(region)
        message_match = _STATUS_MESSAGE_RE.search(region)
        status_code = code_match.group(1) if code_match else "unknown"
        status_message = message_match.group(1) if message_match else "Unknown error"
        return Classification(ok=False, message=f"QB Operation Error {status_code}: {status_message}")

    return Classification(ok=True, result={"raw": body, "identifiers": extract_identifiers(body)})
