from dataclasses import dataclass
from typing import Any

from .errors import APIError, InvalidResponse


@dataclass(frozen=True)
class Resource:
    path: str
    list_key: str
    item_key: str
    # list endpoint honours page/per_page and reports page_context.has_more_page
    paginated: bool = False
    # field used by find_by() when none is given
    name_field: str = "name"


CONTACTS = Resource("/contacts", "contacts", "contact", paginated=True, name_field="contact_name")
INVOICES = Resource("/invoices", "invoices", "invoice", name_field="invoice_number")
EXPENSES = Resource("/expenses", "expenses", "expense", paginated=True, name_field="reference_number")
PAYMENTS = Resource("/customerpayments", "customerpayments", "payment", name_field="payment_number")
ACCOUNTS = Resource(
    "/chartofaccounts", "chartofaccounts", "chart_of_account", name_field="account_name"
)
ITEMS = Resource("/items", "items", "item")
TAXES = Resource("/settings/taxes", "taxes", "tax", name_field="tax_name")
TAX_EXEMPTIONS = Resource(
    "/settings/taxexemptions", "tax_exemptions", "tax_exemption", name_field="tax_exemption_code"
)

RESOURCES: dict[str, Resource] = {
    "contacts": CONTACTS,
    "invoices": INVOICES,
    "expenses": EXPENSES,
    "payments": PAYMENTS,
    "accounts": ACCOUNTS,
    "items": ITEMS,
    "taxes": TAXES,
    "tax_exemptions": TAX_EXEMPTIONS,
}


def coerce_resource(resource) -> Resource:
    if isinstance(resource, Resource):
        return resource
    try:
        return RESOURCES[str(resource)]
    except KeyError:
        raise ValueError(
            f"unknown resource {resource!r}; expected one of {', '.join(RESOURCES)}"
        ) from None


def _result_code(code: Any) -> Any:
    # numeric strings count as numbers; anything else is reported as received
    if isinstance(code, str) and code.strip().lstrip("-").isdigit():
        return int(code)
    if isinstance(code, float) and code.is_integer():
        return int(code)
    return code


def check_envelope(payload: Any) -> dict:
    """Raise APIError when a 2xx envelope carries a non-zero result code."""
    if not isinstance(payload, dict):
        raise InvalidResponse(f"expected a JSON object, got {type(payload).__name__}")
    code = _result_code(payload.get("code", 0))
    if code not in (0, None):
        raise APIError(code, str(payload.get("message", "")))
    return payload


def unwrap_item(resource: Resource, payload: Any) -> dict:
    envelope = check_envelope(payload)
    item = envelope.get(resource.item_key)
    if not isinstance(item, dict):
        raise InvalidResponse(f"response has no '{resource.item_key}' object")
    return item


def has_more_pages(payload: dict) -> bool:
    context = payload.get("page_context") or {}
    return context.get("has_more_page") is True


def matches(record: dict, field: str, value: str) -> bool:
    return str(record.get(field) or "").lower() == str(value).lower()


def mentions(record: dict, fields, needle: str) -> bool:
    """True when any of the fields contains needle, ignoring case."""
    needle = needle.lower()
    return any(needle in str(record.get(f) or "").lower() for f in fields)
