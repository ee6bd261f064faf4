"""
QWC descriptor generation.

The .qwc file is what an operator loads into the Web Connector to register
this server; it carries the SOAP URL, the connector user name and the
polling schedule.
"""
import uuid
from typing import Optional
from xml.sax.saxutils import escape

from ..config import Settings


def _braced_uuid() -> str:
    return "{" + str(uuid.uuid4()) + "}"


def build_qwc(settings: Settings, owner_id: Optional[str] = None, file_id: Optional[str] = None) -> str:
    """Return the QBWCXML document for ``settings``."""
    app_url = settings.server_url.rstrip("/") + settings.soap_path
    owner_id = owner_id or _braced_uuid()
    file_id = file_id or _braced_uuid()

    return f"""<?xml version="1.0"?>
<QBWCXML>
  <AppName>{escape(settings.app_name)}</AppName>
  <AppID></AppID>
  <AppURL>{escape(app_url)}</AppURL>
  <AppDescription>{escape(settings.app_description)}</AppDescription>
  <AppSupport>{escape(settings.app_support)}</AppSupport>
  <UserName>{escape(settings.qbwc_username)}</UserName>
  <OwnerID>{owner_id}</OwnerID>
  <FileID>{file_id}</FileID>
  <QBType>QBFS</QBType>
  <Scheduler>
    <RunEveryNMinutes>{settings.run_every_minutes}</RunEveryNMinutes>
  </Scheduler>
  <IsReadOnly>false</IsReadOnly>
</QBWCXML>"""
