import xml.etree.ElementTree as ET

import pytest

from qbwc_bridge.utils.qbxml_builder import (
    build_customer_add_qbxml,
    build_customer_query_qbxml,
    build_invoice_add_qbxml,
    build_invoice_query_qbxml,
    build_item_add_qbxml,
    build_item_group_query_qbxml,
    build_item_query_qbxml,
    normalize_lookup_text,
)


def _rq(qbxml, tag):
    """Parse a request document and return the named request element."""
    assert qbxml.startswith('<?xml version="1.0" encoding="utf-8"?>\n<?qbxml version="13.0"?>')
    root = ET.fromstring(qbxml)
    assert root.find("QBXMLMsgsRq").get("onError") == "stopOnError"
    element = root.find(f"QBXMLMsgsRq/{tag}")
    assert element is not None
    return element


def test_customer_query_defaults():
    rq = _rq(build_customer_query_qbxml({}), "CustomerQueryRq")
    assert rq.findtext("MaxReturned") == "100"
    assert rq.find("FullName") is None
    assert [el.text for el in rq.findall("IncludeRetElement")][:2] == ["ListID", "Name"]


def test_customer_query_by_exact_name_omits_max_returned():
    rq = _rq(build_customer_query_qbxml({"name": "Smith & Sons", "maxReturned": 5}), "CustomerQueryRq")
    assert rq.findtext("FullName") == "Smith & Sons"
    assert rq.find("MaxReturned") is None


def test_customer_query_name_filter_follows_max_returned():
    rq = _rq(build_customer_query_qbxml({"maxReturned": 10, "nameFilter": {"name": "Acme"}}), "CustomerQueryRq")
    tags = [child.tag for child in rq]
    assert tags.index("MaxReturned") < tags.index("NameFilter") < tags.index("IncludeRetElement")
    assert rq.findtext("NameFilter/MatchCriterion") == "StartsWith"
    assert rq.findtext("NameFilter/Name") == "Acme"


def test_builders_are_deterministic():
    payload = {"maxReturned": 100, "nameFilter": {"name": "A", "matchCriterion": "Contains"}}
    assert build_customer_query_qbxml(payload) == build_customer_query_qbxml(dict(payload))


def test_item_query_normalizes_lookup_name():
    rq = _rq(build_item_query_qbxml({"name": "  Blue\u00a0 Widget\u200b "}), "ItemQueryRq")
    assert rq.findtext("FullName") == "Blue Widget"
    assert rq.findtext("ActiveStatus") == "All"
    assert rq.find("MaxReturned") is None


def test_item_group_query_requires_item_id():
    with pytest.raises(ValueError, match="itemId is required"):
        build_item_group_query_qbxml({})
    rq = _rq(build_item_group_query_qbxml({"itemId": "8000-1"}), "ItemQueryRq")
    assert rq.findtext("ListID") == "8000-1"
    assert rq.find("IncludeRetElement") is None


def test_item_add_service_uses_sales_or_purchase():
    rq = _rq(build_item_add_qbxml({"type": "Service", "name": "Consulting", "price": 150, "account": "Services"}),
             "ItemServiceAddRq")
    add = rq.find("ItemServiceAdd")
    assert add.findtext("Name") == "Consulting"
    assert add.findtext("SalesOrPurchase/Price") == "150.00"
    assert add.findtext("SalesOrPurchase/AccountRef/FullName") == "Services"


def test_item_add_inventory_uses_sales_fields():
    rq = _rq(build_item_add_qbxml({"type": "Inventory", "name": "Widget", "description": "Blue", "price": "9.5"}),
             "ItemInventoryAddRq")
    add = rq.find("ItemInventoryAdd")
    assert add.findtext("SalesDesc") == "Blue"
    assert add.findtext("SalesPrice") == "9.50"
    assert add.find("SalesOrPurchase") is None


@pytest.mark.parametrize("payload,message", [
    ({"type": "Service"}, "Item name is required"),
    ({"type": "Bundle", "name": "x"}, "Invalid type: Bundle"),
])
def test_item_add_validation(payload, message):
    with pytest.raises(ValueError, match=message):
        build_item_add_qbxml(payload)


def test_customer_add():
    rq = _rq(build_customer_add_qbxml({"fullName": "Jane <Doe>", "email": "jane@example.com"}), "CustomerAddRq")
    assert rq.findtext("CustomerAdd/Name") == "Jane <Doe>"
    assert rq.findtext("CustomerAdd/Email") == "jane@example.com"
    with pytest.raises(ValueError):
        build_customer_add_qbxml({})


def test_invoice_query_filters():
    rq = _rq(build_invoice_query_qbxml({"customerName": "Acme", "txnDateStart": "2024-01-01"}), "InvoiceQueryRq")
    assert rq.findtext("MaxReturned") == "20"
    assert rq.findtext("TxnDateRangeFilter/FromTxnDate") == "2024-01-01"
    assert rq.find("TxnDateRangeFilter/ToTxnDate") is None
    assert rq.findtext("EntityFilter/FullName") == "Acme"


def test_invoice_add_full_document():
    payload = {
        "customer": {"listId": "80000001-1"},
        "txnDate": "2024-05-01",
        "refNumber": "INV-1",
        "memo": "Thanks",
        "billTo": {"address1": "1 Main St", "city": "Springfield"},
        "lineItems": [
            {"item": {"fullName": "Consulting"}, "description": "Hours", "quantity": 3, "rate": 100},
            {"item": {"listId": "80000002-1"}, "quantity": 1, "amount": 49.999},
        ],
    }
    add = _rq(build_invoice_add_qbxml(payload), "InvoiceAddRq").find("InvoiceAdd")

    assert add.findtext("CustomerRef/ListID") == "80000001-1"
    assert add.findtext("RefNumber") == "INV-1"
    assert add.findtext("BillAddress/Addr1") == "1 Main St"
    lines = add.findall("InvoiceLineAdd")
    assert lines[0].findtext("ItemRef/FullName") == "Consulting"
    assert lines[0].findtext("Rate") == "100.00"
    assert lines[1].findtext("ItemRef/ListID") == "80000002-1"
    assert lines[1].findtext("Amount") == "50.00"
    assert lines[1].find("Rate") is None


@pytest.mark.parametrize("payload,message", [
    ({"lineItems": [{}]}, "Customer reference"),
    ({"customer": {"fullName": "A"}, "lineItems": []}, "At least one line item"),
    ({"customer": {"fullName": "A"}, "lineItems": [{"quantity": 1, "rate": 1}]}, "Line item 1: item reference"),
    ({"customer": {"fullName": "A"}, "lineItems": [{"item": {"fullName": "W"}, "rate": 1}]}, "Line item 1: quantity"),
    ({"customer": {"fullName": "A"}, "lineItems": [{"item": {"fullName": "W"}, "quantity": 1}]}, "rate or amount"),
])
def test_invoice_add_validation(payload, message):
    with pytest.raises(ValueError, match=message):
        build_invoice_add_qbxml(payload)


def test_normalize_lookup_text_handles_none():
    assert normalize_lookup_text(None) is None
