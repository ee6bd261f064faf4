import pytest

from qbwc_bridge import create_app
from qbwc_bridge.config import load_settings
from qbwc_bridge.services.job_queue import JobQueue
from qbwc_bridge.services.qbwc_service import QBWCDispatcher
from qbwc_bridge.services.session import TicketSession

USERNAME = "qbwc_user"
PASSWORD = "secret"

SUCCESS_RESPONSE = """<?xml version="1.0" ?>
<QBXML>
<QBXMLMsgsRs>
<CustomerQueryRs requestID="cust-query-1" statusCode="0" statusSeverity="Info" statusMessage="Status OK">
<CustomerRet>
<ListID>80000001-1234567890</ListID>
<Name>Acme Corp</Name>
<FullName>Acme Corp</FullName>
</CustomerRet>
</CustomerQueryRs>
</QBXMLMsgsRs>
</QBXML>"""

OPERATION_ERROR_RESPONSE = """<?xml version="1.0" ?>
<QBXML>
<QBXMLMsgsRs>
<CustomerAddRs requestID="cust-1" statusCode="3100" statusSeverity="Error" statusMessage="The name &quot;Acme Corp&quot; of the list element is already in use." />
</QBXMLMsgsRs>
</QBXML>"""


@pytest.fixture
def settings():
    return load_settings(qbwc_username=USERNAME, qbwc_password=PASSWORD,
                         server_url="https://qb.example.com", soap_path="/quickbooks")


@pytest.fixture
def queue():
    return JobQueue()


@pytest.fixture
def session():
    return TicketSession(USERNAME, PASSWORD)


@pytest.fixture
def dispatcher(queue, session, settings):
    return QBWCDispatcher(queue, session, settings)


@pytest.fixture
def app(settings, queue):
    flask_app = create_app(settings=settings, queue=queue, configure_logging=False)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
