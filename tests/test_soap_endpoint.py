"""
SOAP round trips through the Flask endpoint, shaped like the envelopes the
Web Connector sends.
"""
import xml.etree.ElementTree as ET
from xml.sax.saxutils import escape

from conftest import PASSWORD, SUCCESS_RESPONSE, USERNAME

from qbwc_bridge.services.job_queue import JobStatus, JobType

QBWC_NS = "http://developer.intuit.com/"
SOAP_HEADERS = {"Content-Type": "text/xml; charset=utf-8"}


def _envelope(method, params):
    body = "".join(f"<{name}>{escape(str(value))}</{name}>" for name, value in params)
    return f"""<?xml version="1.0" encoding="utf-8"?>
<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/"
               xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
               xmlns:xsd="http://www.w3.org/2001/XMLSchema">
  <soap:Body>
    <{method} xmlns="{QBWC_NS}">{body}</{method}>
  </soap:Body>
</soap:Envelope>"""


def _call(client, method, *params):
    response = client.post(
        "/quickbooks",
        data=_envelope(method, params).encode("utf-8"),
        headers={**SOAP_HEADERS, "SOAPAction": f"{QBWC_NS}{method}"},
    )
    assert response.status_code == 200, response.data
    assert b"Fault" not in response.data
    root = ET.fromstring(response.data)
    result = root.find(f".//{{{QBWC_NS}}}{method}Result")
    assert result is not None, response.data
    return result


def _text(client, method, *params):
    return _call(client, method, *params).text or ""


def _authenticate(client, username=USERNAME, password=PASSWORD):
    result = _call(client, "authenticate", ("strUserName", username), ("strPassword", password))
    return [child.text or "" for child in result]


def _send_request(client, ticket):
    return _text(client, "sendRequestXML",
                 ("ticket", ticket), ("strHCPResponse", ""), ("strCompanyFileName", "C:\\test.qbw"),
                 ("qbXMLCountry", "US"), ("qbXMLMajorVers", "13"), ("qbXMLMinorVers", "0"))


def _receive_response(client, ticket, response="", hresult="", message=""):
    return _text(client, "receiveResponseXML",
                 ("ticket", ticket), ("response", response), ("hresult", hresult), ("message", message))


def test_server_and_client_version(client):
    assert _text(client, "serverVersion") == "1.0.0"
    assert _text(client, "clientVersion", ("strVersion", "2.3.0.215")) == ""


def test_authenticate_sentinels(client, queue):
    assert _authenticate(client, password="wrong")[0] == "nvu"
    assert _authenticate(client)[0] == "none"

    queue.enqueue(JobType.CUSTOMER_QUERY, {"maxReturned": 100})
    assert _authenticate(client, password="wrong")[0] == "nvu"


def test_full_round(client, queue, app):
    job = queue.enqueue(JobType.CUSTOMER_QUERY, {"maxReturned": 100})

    ticket, company_file = _authenticate(client)
    assert ticket.startswith("ticket_")
    assert company_file == ""

    request_xml = _send_request(client, ticket)
    assert "<CustomerQueryRq" in request_xml
    assert queue.get(job.id).status == JobStatus.PROCESSING

    assert _receive_response(client, ticket, SUCCESS_RESPONSE) == "100"
    assert queue.get(job.id).status == JobStatus.DONE

    assert _text(client, "getLastError", ("ticket", ticket)) == ""
    assert _text(client, "closeConnection", ("ticket", ticket)) == "OK"
    assert not app.extensions["qbwc_bridge"].session.active


def test_upstream_error_over_soap(client, queue):
    job = queue.enqueue(JobType.CUSTOMER_QUERY, {})
    ticket, _ = _authenticate(client)
    _send_request(client, ticket)

    assert _receive_response(client, ticket, "", "0x80040400", "QuickBooks found an error") == "100"
    assert "0x80040400" in queue.get(job.id).error
    assert "0x80040400" in _text(client, "getLastError", ("ticket", ticket))


def test_stale_ticket_after_close(client, queue):
    queue.enqueue(JobType.CUSTOMER_QUERY, {})
    ticket, _ = _authenticate(client)

    assert _text(client, "closeConnection", ("ticket", "whatever")) == "OK"
    assert _send_request(client, ticket) == ""
    assert queue.has_pending()


def test_connection_error(client):
    assert _text(client, "connectionError",
                 ("ticket", "t"), ("hresult", "0x80040408"), ("message", "Could not start QuickBooks.")) == "done"
    assert _text(client, "getLastError", ("ticket", "t")) == "Connection error: 0x80040408 Could not start QuickBooks."


def test_wsdl_is_served(client):
    response = client.get("/quickbooks?wsdl")
    assert response.status_code == 200
    assert b"authenticate" in response.data
    assert b"receiveResponseXML" in response.data
