"""
QuickBooks Web Connector (QBWC) SOAP service implementation.

``QBWCDispatcher`` drives the fixed QBWC call sequence
(authenticate -> sendRequestXML -> receiveResponseXML -> closeConnection)
against the job queue. ``QBWCService`` is the spyne binding that exposes the
dispatcher under the method names QBWC calls.

Nothing raised while building a request or reading a response may escape a
SOAP call: QBWC retries or aborts the whole sync on a fault, so every failure
is turned into a job error and a safe return value.
"""
import logging
import threading
from typing import Callable, Dict, List, Optional

from spyne import Application, Iterable, ServiceBase, Unicode, rpc
from spyne.protocol.soap import Soap11

from ..config import SOAP_NAMESPACE, Settings, load_settings
from ..utils.qbxml_builder import (
    build_customer_add_qbxml,
    build_customer_query_qbxml,
    build_invoice_add_qbxml,
    build_invoice_query_qbxml,
    build_item_add_qbxml,
    build_item_group_query_qbxml,
    build_item_query_qbxml,
)
from .job_queue import Job, JobQueue, JobStatus, JobType
from .response_classifier import classify_response
from .session import TicketSession

logger = logging.getLogger(__name__)

# Handshake sentinels returned in place of a ticket
INVALID_USER = "nvu"
NO_WORK = "none"

# receiveResponseXML progress values
PROGRESS_MORE_WORK = "10"
PROGRESS_COMPLETE = "100"

CLOSE_ACK = "OK"
CONNECTION_ERROR_ACK = "done"

Builder = Callable[[Dict, str], str]

BUILDERS: Dict[JobType, Builder] = {
    JobType.CUSTOMER_ADD: build_customer_add_qbxml,
    JobType.CUSTOMER_QUERY: build_customer_query_qbxml,
    JobType.ITEM_ADD: build_item_add_qbxml,
    JobType.ITEM_QUERY: build_item_query_qbxml,
    JobType.ITEM_GROUP_QUERY: build_item_group_query_qbxml,
    JobType.INVOICE_ADD: build_invoice_add_qbxml,
    JobType.INVOICE_QUERY: build_invoice_query_qbxml,
}


class QBWCDispatcher:
    """Protocol state for one QBWC connector talking to one job queue."""

    def __init__(self, queue: JobQueue, session: TicketSession,
                 settings: Optional[Settings] = None,
                 builders: Optional[Dict[JobType, Builder]] = None):
        self.queue = queue
        self.session = session
        self.settings = settings or load_settings()
        self.builders = dict(BUILDERS if builders is None else builders)
        self._in_flight: Optional[Job] = None
        self._last_error = ""
        self._lock = threading.RLock()

    @property
    def last_error(self) -> str:
        return self._last_error

    @property
    def in_flight(self) -> Optional[Job]:
        return self._in_flight

    def _fail_job(self, job: Job, message: str):
        self._last_error = message
        logger.error(message)
        self.queue.mark_error(job.id, message)

    def _report_idle(self):
        """Explain why sendRequestXML has no request to hand out."""
        if self._in_flight is not None:
            logger.warning(f"sendRequestXML: job {self._in_flight.id} already sent; waiting for its response")
            return

        stuck = self.queue.list_jobs(JobStatus.PROCESSING)
        if stuck:
            job_id = stuck[0].id
            self._last_error = f"Job {job_id} is still processing; abandon it via /api/jobs/{job_id}/abandon"
            logger.error(f"sendRequestXML: {self._last_error}")
        else:
            logger.info("sendRequestXML: No pending jobs")

    def authenticate(self, username, password) -> List[str]:
        logger.info(f"authenticate called. UserName: {username}")
        with self._lock:
            # A new handshake always ends whatever round came before it
            self.session.close()
            self._in_flight = None

            if not self.session.check_credentials(username, password):
                logger.warning(f"Authentication failed for user: {username}")
                return [INVALID_USER, ""]

            if not self.queue.has_pending():
                logger.info("Authentication successful but no pending jobs; returning 'none'")
                return [NO_WORK, ""]

            ticket = self.session.open()
            company_file = self.settings.company_file or ""
            logger.info(f"Authentication successful, ticket: {ticket}, company file: {company_file or '(use currently open)'}")
            return [ticket, company_file]

    def client_version(self, version) -> str:
        logger.info(f"clientVersion called with version: {version}")
        # Empty string accepts any connector version
        return ""

    def server_version(self) -> str:
        return self.settings.server_version

    def send_request_xml(self, ticket, company_file=None, major_version=None, minor_version=None) -> str:
        logger.info(f"sendRequestXML invoked with ticket: {ticket}")
        logger.debug(f"sendRequestXML: CompanyFileName='{company_file or '(current)'}', QBXMLVersion='{major_version}.{minor_version}'")

        with self._lock:
            self._last_error = ""

            if not self.session.is_valid(ticket):
                logger.error(f"sendRequestXML: Invalid ticket {ticket}")
                return ""

            job = self.queue.next_pending()
            if job is None:
                self._report_idle()
                return ""
            self._in_flight = job

            logger.info(f"sendRequestXML: Processing job {job.id} ({job.type})")
            job_type = JobType.parse(job.type)
            builder = self.builders.get(job_type) if job_type is not None else None
            if builder is None:
                self._fail_job(job, f"Unknown job type: {job.type}")
                self._in_flight = None
                return ""

            try:
                qbxml = builder(job.payload, self.settings.qbxml_version)
            except Exception as e:
                logger.debug(f"Builder for job {job.id} raised", exc_info=True)
                self._fail_job(job, f"Builder error: {e}")
                self._in_flight = None
                return ""

            if not qbxml:
                self._fail_job(job, f"Builder error: empty request for {job.type}")
                self._in_flight = None
                return ""

            logger.debug(f"sendRequestXML: XML preview: {qbxml[:200]}...")
            return qbxml

    def receive_response_xml(self, ticket, response=None, hresult=None, message=None) -> str:
        logger.info(f"receiveResponseXML called. HRESULT: {hresult or '(none)'}, Message: {message or '(none)'}")

        with self._lock:
            if not self.session.is_valid(ticket):
                logger.error(f"receiveResponseXML: Invalid ticket {ticket}; response ignored")
                return ""

            job, self._in_flight = self._in_flight, None
            try:
                outcome = classify_response(response, hresult, message)
                if job is None:
                    logger.warning("receiveResponseXML: no job in flight for this response")
                elif outcome.ok:
                    self.queue.mark_done(job.id, outcome.result)
                    if response:
                        logger.debug(f"Response preview: {response[:200]}...")
                else:
                    self._fail_job(job, outcome.message)
            except Exception as e:
                logger.error(f"receiveResponseXML: failed to process response: {e}", exc_info=True)
                message = f"receiveResponseXML error: {e}"
                if job is not None:
                    self._fail_job(job, message)
                else:
                    self._last_error = message

            more = self.queue.has_pending()
            progress = PROGRESS_MORE_WORK if more else PROGRESS_COMPLETE
            logger.info(f"Progress: {progress}% ({'more jobs pending' if more else 'all done'})")
            return progress

    def get_last_error(self, ticket=None) -> str:
        logger.info(f"getLastError called. Ticket: {ticket}, Error: {self._last_error or '(none)'}")
        return self._last_error or ""

    def connection_error(self, ticket=None, hresult=None, message=None) -> str:
        with self._lock:
            self._last_error = f"Connection error: {hresult or ''} {message or ''}".strip()
        logger.error(f"connectionError called. Ticket: {ticket}, {self._last_error}")
        return CONNECTION_ERROR_ACK

    def close_connection(self, ticket=None) -> str:
        logger.info(f"closeConnection called. Ticket: {ticket}")
        with self._lock:
            if self._in_flight is not None:
                logger.warning(f"closeConnection: job {self._in_flight.id} is left in processing without a response")
            self._in_flight = None
            self.session.close()
        return CLOSE_ACK


def _dispatcher(ctx) -> QBWCDispatcher:
    return ctx.udc


class QBWCService(ServiceBase):
    """QuickBooks Web Connector SOAP methods, delegating to the dispatcher."""

    @rpc(Unicode, Unicode, _returns=Iterable(Unicode))
    def authenticate(ctx, strUserName, strPassword):
        return _dispatcher(ctx).authenticate(strUserName, strPassword)

    @rpc(Unicode, _returns=Unicode)
    def clientVersion(ctx, strVersion):
        return _dispatcher(ctx).client_version(strVersion)

    @rpc(_returns=Unicode)
    def serverVersion(ctx):
        return _dispatcher(ctx).server_version()

    @rpc(Unicode, Unicode, Unicode, Unicode, Unicode, Unicode, _returns=Unicode)
    def sendRequestXML(ctx, ticket, strHCPResponse, strCompanyFileName,
                       qbXMLCountry, qbXMLMajorVers, qbXMLMinorVers):
        return _dispatcher(ctx).send_request_xml(ticket, strCompanyFileName, qbXMLMajorVers, qbXMLMinorVers)

    @rpc(Unicode, Unicode, Unicode, Unicode, _returns=Unicode)
    def receiveResponseXML(ctx, ticket, response, hresult, message):
        return _dispatcher(ctx).receive_response_xml(ticket, response, hresult, message)

    @rpc(Unicode, _returns=Unicode)
    def getLastError(ctx, ticket):
        return _dispatcher(ctx).get_last_error(ticket)

    @rpc(Unicode, Unicode, Unicode, _returns=Unicode)
    def connectionError(ctx, ticket, hresult, message):
        return _dispatcher(ctx).connection_error(ticket, hresult, message)

    @rpc(Unicode, _returns=Unicode)
    def closeConnection(ctx, ticket):
        return _dispatcher(ctx).close_connection(ticket)


def build_soap_application(dispatcher: QBWCDispatcher) -> Application:
    """Create the spyne application and bind every call to ``dispatcher``."""
    soap_app = Application(
        [QBWCService],
        tns=SOAP_NAMESPACE,
        name='QBWebConnectorSvc',
        in_protocol=Soap11(validator='lxml'),
        out_protocol=Soap11(),
    )

    def _on_method_call(ctx):
        logger.debug(f"Method {ctx.descriptor.name} called")
        ctx.udc = dispatcher

    soap_app.event_manager.add_listener('method_call', _on_method_call)
    return soap_app
