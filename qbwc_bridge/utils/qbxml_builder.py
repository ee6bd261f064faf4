"""
QBXML builder utilities for the QBWC bridge.

One pure function per job type: each takes the job payload and returns the
QBXML request document for QuickBooks. Builders raise ``ValueError`` when a
payload is missing required fields.
"""
import re
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

DEFAULT_QBXML_VERSION = "13.0"

VALID_ITEM_TYPES = ("Service", "NonInventory", "Inventory")

CUSTOMER_RET_ELEMENTS = ("ListID", "Name", "FullName", "CompanyName", "Email", "Phone")
ITEM_RET_ELEMENTS = ("ListID", "Name", "FullName", "Type", "IsActive", "SalesPrice", "SalesDesc")
INVOICE_RET_ELEMENTS = (
    "TxnID", "TimeCreated", "TimeModified", "TxnDate", "CustomerRef", "RefNumber",
    "BillAddress", "ShipAddress", "ClassRef", "TermsRef", "DueDate", "Memo",
    "IsPending", "IsFinanceCharge", "PONumber", "Subtotal", "SalesTaxPercentage",
    "SalesTaxTotal", "BalanceRemaining", "InvoiceLineRet", "DepositToAccountRef",
)

ADDRESS_FIELDS = (
    ("address1", "Addr1"),
    ("address2", "Addr2"),
    ("address3", "Addr3"),
    ("address4", "Addr4"),
    ("address5", "Addr5"),
    ("city", "City"),
    ("state", "State"),
    ("postalCode", "PostalCode"),
    ("country", "Country"),
    ("note", "Note"),
)


def normalize_lookup_text(value: Optional[str]) -> Optional[str]:
    """Collapse whitespace and strip invisible characters from a lookup name."""
    if value is None:
        return None
    text = str(value).replace("\u00a0", " ")
    text = re.sub("[\u200b-\u200d\ufeff]", "", text)
    return re.sub(r"\s+", " ", text).strip()


def _wrap_request(inner: str, qbxml_version: str = DEFAULT_QBXML_VERSION) -> str:
    return f"""<?xml version="1.0" encoding="utf-8"?>
<?qbxml version="{qbxml_version}"?>
<QBXML>
  <QBXMLMsgsRq onError="stopOnError">
{inner}
  </QBXMLMsgsRq>
</QBXML>"""


def _element(tag: str, value: Any, indent: int = 6) -> str:
    return f"{' ' * indent}<{tag}>{escape(str(value))}</{tag}>"


def _ref_xml(tag: str, ref: Dict[str, Any], indent: int = 6) -> str:
    """Build a ``<XRef>`` block preferring ListID over FullName."""
    pad = ' ' * indent
    if ref.get("listId"):
        inner = _element("ListID", ref["listId"], indent + 2)
    else:
        inner = _element("FullName", ref["fullName"], indent + 2)
    return f"{pad}<{tag}>\n{inner}\n{pad}</{tag}>"


def _name_filter_xml(name_filter: Optional[Dict[str, Any]], name: Optional[str]) -> List[str]:
    if not name:
        return []
    criterion = (name_filter or {}).get("matchCriterion") or "StartsWith"
    return [
        "      <NameFilter>",
        _element("MatchCriterion", criterion, 8),
        _element("Name", name, 8),
        "      </NameFilter>",
    ]


def _format_amount(value: Any) -> str:
    return f"{float(value):.2f}"


def _address_xml(tag: str, address: Optional[Dict[str, Any]]) -> List[str]:
    if not address:
        return []
    lines = [f"      <{tag}>"]
    for key, qb_tag in ADDRESS_FIELDS:
        if address.get(key):
            lines.append(_element(qb_tag, address[key], 8))
    lines.append(f"      </{tag}>")
    return lines


def build_customer_query_qbxml(payload: Dict[str, Any], qbxml_version: str = DEFAULT_QBXML_VERSION) -> str:
    """
    Build a CustomerQueryRq.

    QBXML requires FullName first, then MaxReturned, then NameFilter, then
    IncludeRetElement. An exact FullName lookup omits MaxReturned.
    """
    name = payload.get("name")
    name_filter = payload.get("nameFilter") or None

    lines = ['    <CustomerQueryRq requestID="cust-query-1">']
    if name:
        lines.append(_element("FullName", name))
    else:
        lines.append(_element("MaxReturned", payload.get("maxReturned") or 100))
    lines.extend(_name_filter_xml(name_filter, (name_filter or {}).get("name")))
    lines.extend(_element("IncludeRetElement", el) for el in CUSTOMER_RET_ELEMENTS)
    lines.append("    </CustomerQueryRq>")
    return _wrap_request("\n".join(lines), qbxml_version)


def build_item_query_qbxml(payload: Dict[str, Any], qbxml_version: str = DEFAULT_QBXML_VERSION) -> str:
    """Build an ItemQueryRq, including inactive items."""
    name = normalize_lookup_text(payload.get("name"))
    name_filter = payload.get("nameFilter") or None
    filter_name = normalize_lookup_text((name_filter or {}).get("name"))

    lines = ['    <ItemQueryRq requestID="item-query-1">']
    if name:
        lines.append(_element("FullName", name))
    else:
        lines.append(_element("MaxReturned", payload.get("maxReturned") or 100))
    lines.append(_element("ActiveStatus", "All"))
    lines.extend(_name_filter_xml(name_filter, filter_name))
    lines.extend(_element("IncludeRetElement", el) for el in ITEM_RET_ELEMENTS)
    lines.append("    </ItemQueryRq>")
    return _wrap_request("\n".join(lines), qbxml_version)


def build_item_group_query_qbxml(payload: Dict[str, Any], qbxml_version: str = DEFAULT_QBXML_VERSION) -> str:
    """Look up one item by ListID with full ItemGroupLineRet data."""
    item_id = payload.get("itemId")
    if not item_id:
        raise ValueError("itemId is required")

    # No IncludeRetElement so QuickBooks returns the group lines
    inner = "\n".join([
        '    <ItemQueryRq requestID="item-group-products-query-1">',
        _element("ListID", item_id),
        "    </ItemQueryRq>",
    ])
    return _wrap_request(inner, qbxml_version)


def build_item_add_qbxml(payload: Dict[str, Any], qbxml_version: str = DEFAULT_QBXML_VERSION) -> str:
    """
    Build an Item{Service,NonInventory,Inventory}AddRq.

    Inventory items carry SalesDesc/SalesPrice/IncomeAccountRef directly;
    service and non-inventory items nest them in SalesOrPurchase.
    """
    name = payload.get("name")
    if not name:
        raise ValueError("Item name is required")
    item_type = payload.get("type") or "Service"
    if item_type not in VALID_ITEM_TYPES:
        raise ValueError(f"Invalid type: {item_type}. Use: {', '.join(VALID_ITEM_TYPES)}")

    description = payload.get("description")
    price = payload.get("price")
    account = payload.get("account")

    lines = [
        f'    <Item{item_type}AddRq requestID="item-1">',
        f"      <Item{item_type}Add>",
        _element("Name", name, 8),
    ]
    if item_type == "Inventory":
        if description:
            lines.append(_element("SalesDesc", description, 8))
        if price is not None:
            lines.append(_element("SalesPrice", _format_amount(price), 8))
        if account:
            lines.append(_ref_xml("IncomeAccountRef", {"fullName": account}, 8))
    elif description or price is not None or account:
        lines.append("        <SalesOrPurchase>")
        if description:
            lines.append(_element("Desc", description, 10))
        if price is not None:
            lines.append(_element("Price", _format_amount(price), 10))
        if account:
            lines.append(_ref_xml("AccountRef", {"fullName": account}, 10))
        lines.append("        </SalesOrPurchase>")
    lines.extend([f"      </Item{item_type}Add>", f"    </Item{item_type}AddRq>"])
    return _wrap_request("\n".join(lines), qbxml_version)


def build_customer_add_qbxml(payload: Dict[str, Any], qbxml_version: str = DEFAULT_QBXML_VERSION) -> str:
    full_name = payload.get("fullName")
    if not full_name:
        raise ValueError("fullName is required")

    inner = "\n".join([
        '    <CustomerAddRq requestID="cust-1">',
        "      <CustomerAdd>",
        _element("Name", full_name, 8),
        _element("Phone", payload.get("phone") or "", 8),
        _element("Email", payload.get("email") or "", 8),
        "      </CustomerAdd>",
        "    </CustomerAddRq>",
    ])
    return _wrap_request(inner, qbxml_version)


def build_invoice_query_qbxml(payload: Dict[str, Any], qbxml_version: str = DEFAULT_QBXML_VERSION) -> str:
    """Build an InvoiceQueryRq with optional date range and customer filters."""
    lines = ['    <InvoiceQueryRq requestID="invoice-query-1">']
    lines.append(_element("MaxReturned", payload.get("maxReturned") or 20))

    date_start = payload.get("txnDateStart")
    date_end = payload.get("txnDateEnd")
    if date_start or date_end:
        lines.append("      <TxnDateRangeFilter>")
        if date_start:
            lines.append(_element("FromTxnDate", date_start, 8))
        if date_end:
            lines.append(_element("ToTxnDate", date_end, 8))
        lines.append("      </TxnDateRangeFilter>")

    customer_name = payload.get("customerName")
    if customer_name:
        lines.extend([
            "      <EntityFilter>",
            _element("FullName", customer_name, 8),
            "      </EntityFilter>",
        ])

    lines.append(_element("IncludeLineItems", "true"))
    lines.extend(_element("IncludeRetElement", el) for el in INVOICE_RET_ELEMENTS)
    lines.append("    </InvoiceQueryRq>")
    return _wrap_request("\n".join(lines), qbxml_version)


def build_invoice_add_qbxml(payload: Dict[str, Any], qbxml_version: str = DEFAULT_QBXML_VERSION) -> str:
    """
    Build an InvoiceAddRq.

    ``customer`` and every line ``item`` are references with either a
    ``listId`` or a ``fullName``. Each line needs a quantity and either a
    rate or an amount.
    """
    customer = payload.get("customer") or {}
    if not (customer.get("listId") or customer.get("fullName")):
        raise ValueError("Customer reference (listId or fullName) is required")

    line_items = payload.get("lineItems")
    if not isinstance(line_items, list) or not line_items:
        raise ValueError("At least one line item is required")

    lines = [
        '    <InvoiceAddRq requestID="invoice-1">',
        "      <InvoiceAdd>",
        _ref_xml("CustomerRef", customer, 8),
    ]
    if payload.get("txnDate"):
        lines.append(_element("TxnDate", payload["txnDate"], 8))
    if payload.get("refNumber"):
        lines.append(_element("RefNumber", payload["refNumber"], 8))
    lines.extend("  " + line for line in _address_xml("BillAddress", payload.get("billTo")))
    lines.extend("  " + line for line in _address_xml("ShipAddress", payload.get("shipTo")))
    if payload.get("memo"):
        lines.append(_element("Memo", payload["memo"], 8))

    for index, line in enumerate(line_items, start=1):
        item = line.get("item") or {}
        if not (item.get("listId") or item.get("fullName")):
            raise ValueError(f"Line item {index}: item reference (listId or fullName) is required")
        if line.get("quantity") is None:
            raise ValueError(f"Line item {index}: quantity is required")
        if line.get("amount") is None and line.get("rate") is None:
            raise ValueError(f"Line item {index}: rate or amount is required")

        lines.append("        <InvoiceLineAdd>")
        lines.append(_ref_xml("ItemRef", item, 10))
        if line.get("description"):
            lines.append(_element("Desc", line["description"], 10))
        lines.append(_element("Quantity", line["quantity"], 10))
        if line.get("amount") is not None:
            lines.append(_element("Amount", _format_amount(line["amount"]), 10))
        else:
            lines.append(_element("Rate", _format_amount(line["rate"]), 10))
        lines.append("        </InvoiceLineAdd>")

    lines.extend(["      </InvoiceAdd>", "    </InvoiceAddRq>"])
    return _wrap_request("\n".join(lines), qbxml_version)
