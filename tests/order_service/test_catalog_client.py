"""Tests for the HTTP product validator against a mocked catalog transport."""

import json
from decimal import Decimal

import httpx
import pytest

from orders.app.catalog_client import HttpProductValidator
from orders.app.errors import CatalogUnavailable

CATALOG = {
    "P1": {"id": "P1", "name": "Widget", "price": "10.00"},
    "P2": {"id": "P2", "name": "Gadget", "price": "5.00"},
}


def _validator(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpProductValidator("http://catalog:8000/", timeout=1, client=client)


def _catalog_handler(requests):
    def handler(request):
        requests.append(request)
        ids = json.loads(request.content)["ids"]
        return httpx.Response(200, json=[CATALOG[i] for i in ids if i in CATALOG])

    return handler


def test_returns_known_products():
    requests = []
    validator = _validator(_catalog_handler(requests))

    products = validator.validate(["P1", "P2"])

    assert [(p.id, p.name, p.price) for p in products] == [
        ("P1", "Widget", Decimal("10")),
        ("P2", "Gadget", Decimal("5")),
    ]
    assert requests[0].method == "POST"
    assert str(requests[0].url) == "http://catalog:8000/products/validate"


def test_sends_each_id_once():
    requests = []
    validator = _validator(_catalog_handler(requests))

    validator.validate(["P2", "P1", "P2"])

    assert json.loads(requests[0].content) == {"ids": ["P1", "P2"]}


def test_omits_unknown_products():
    validator = _validator(_catalog_handler([]))

    products = validator.validate(["P1", "GONE"])

    assert [p.id for p in products] == ["P1"]


def test_no_ids_makes_no_call():
    requests = []
    validator = _validator(_catalog_handler(requests))

    assert validator.validate([]) == []
    assert requests == []


def test_every_call_goes_to_the_catalog():
    requests = []
    validator = _validator(_catalog_handler(requests))

    validator.validate(["P1"])
    validator.validate(["P1"])

    assert len(requests) == 2


def test_connection_error_is_catalog_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(CatalogUnavailable) as exc_info:
        _validator(handler).validate(["P1"])

    assert "connection refused" in exc_info.value.detail
    assert exc_info.value.status_code == 400


def test_timeout_is_catalog_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(CatalogUnavailable):
        _validator(handler).validate(["P1"])


def test_server_error_is_catalog_unavailable():
    with pytest.raises(CatalogUnavailable):
        _validator(lambda request: httpx.Response(503, text="unavailable")).validate(["P1"])


@pytest.mark.parametrize(
    "body",
    [
        {"id": "P1"},
        [{"id": "P1", "name": "Widget"}],
        [{"id": "P1", "name": "Widget", "price": "-1"}],
    ],
)
def test_malformed_response_is_catalog_unavailable(body):
    with pytest.raises(CatalogUnavailable):
        _validator(lambda request: httpx.Response(200, json=body)).validate(["P1"])


def test_invalid_json_is_catalog_unavailable():
    with pytest.raises(CatalogUnavailable):
        _validator(lambda request: httpx.Response(200, text="not json")).validate(["P1"])


def test_price_finer_than_a_cent_is_catalog_unavailable():
    body = [{"id": "PX", "name": "Fraction", "price": "0.333"}]

    with pytest.raises(CatalogUnavailable, match="catalog unavailable"):
        _validator(lambda request: httpx.Response(200, json=body)).validate(["PX"])
