import pytest
from pydantic import ValidationError

from schemas import DeliveryMethod, OrderDraft, OrderHeader, OrderStatus, Product
from tests.conftest import make_product


def test_draft_requires_name_phone_and_address():
    with pytest.raises(ValidationError):
        OrderDraft(customer_name="  ", customer_phone="+380", delivery_address="Львів")
    with pytest.raises(ValidationError):
        OrderDraft(customer_name="Олена", customer_phone="+380")


def test_draft_blank_email_becomes_none():
    draft = OrderDraft(
        customer_name="Олена",
        customer_phone="+380",
        customer_email=" ",
        delivery_address="Львів",
        delivery_method="courier",
    )
    assert draft.customer_email is None
    assert draft.delivery_method is DeliveryMethod.courier


def test_unknown_delivery_method_is_rejected():
    with pytest.raises(ValidationError):
        OrderDraft(customer_name="a", customer_phone="b", delivery_address="c", delivery_method="pigeon")


def test_unknown_category_is_rejected():
    with pytest.raises(ValidationError):
        make_product("p1", category="kids")


def test_product_volume_must_be_positive():
    with pytest.raises(ValidationError):
        make_product("p1", volume=0)


def test_header_from_draft(draft):
    header = OrderHeader.from_draft(draft, total_amount=1200, currency="UAH")
    assert header.status is OrderStatus.pending
    assert header.customer_name == draft.customer_name
    assert header.model_dump(mode="json")["delivery_method"] == "nova_poshta"


def test_product_ignores_storage_metadata():
    p = Product(
        id="abc",
        brand="Dior",
        name="Sauvage",
        category="men",
        price=5200,
        volume=100,
        created_at="2024-01-01T00:00:00Z",
    )
    assert p.in_stock is True
