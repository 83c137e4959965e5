from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from werkzeug.exceptions import BadRequest, NotFound

from gomint.services.lifecycle import PENDING

logger = logging.getLogger(__name__)

REQUEST_NUMBER_ATTEMPTS = 3

CUSTOMER_SUMMARY_FIELDS = ("firstName", "lastName", "mobile", "email")
BUSINESS_SUMMARY_FIELDS = ("businessName",)
OFFER_SUMMARY_FIELDS = ("name", "cashbackPercent")


def generate_request_number(collection) -> str:
    count = collection.count_documents({})
    stamp = str(int(time.time() * 1000))[-8:]
    return f"REQ-{stamp}-{count + 1:04d}"


def compute_cashback_amount(amount: float, percent: Optional[float]) -> float:
    if not percent:
        return 0.0
    return round(amount * percent / 100.0, 2)


def submit_request(database, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a pending cashback request from a validated payload.

    The customer must exist and have bank details on file; the bank details,
    contact fields and business name are copied onto the request.
    """
    customer = database["customers"].find_one({"_id": payload["customerId"]})
    if customer is None:
        raise NotFound("Customer not found")

    bank_details = customer.get("bankDetails") or {}
    if not bank_details.get("acctNumber"):
        raise BadRequest(
            "Bank details required before requesting cashback. Please update your profile."
        )

    business = database["vendors"].find_one({"_id": payload["businessId"]})
    if business is None:
        raise NotFound("Business not found")

    cashback_percent = payload.get("cashbackPercent")
    offer_id = payload.get("offerId")
    if offer_id is not None:
        offer = database["offers"].find_one({"_id": offer_id})
        if offer is None:
            raise NotFound("Offer not found")
        if offer.get("businessId") != business["_id"]:
            raise BadRequest("offer does not belong to this business")
        if cashback_percent is None:
            cashback_percent = offer.get("cashbackPercent")
    cashback_percent = float(cashback_percent or 0)

    location_name = payload.get("locationName")
    location_id = payload.get("locationId")
    if location_id is not None and not location_name:
        location = database["locations"].find_one({"_id": location_id})
        if location is None:
            raise NotFound("Location not found")
        location_name = location.get("name")

    now = datetime.utcnow()
    document = {
        "customerId": customer["_id"],
        "customerMobile": customer.get("mobile"),
        "customerEmail": customer.get("email"),
        "businessId": business["_id"],
        "businessName": business.get("businessName"),
        "offerId": offer_id,
        "locationId": location_id,
        "locationName": location_name or "",
        "amount": payload["amount"],
        "cashbackPercent": cashback_percent,
        "cashbackAmount": compute_cashback_amount(payload["amount"], cashback_percent),
        "purchaseDetails": payload.get("purchaseDetails"),
        "bankDetails": dict(bank_details),
        "requestStatus": PENDING,
        "paymentStatus": "pending",
        "invoiceId": None,
        "history": [],
        "submittedAt": now,
        "createdAt": now,
        "updatedAt": now,
    }

    collection = database["cashback_requests"]
    for attempt in range(1, REQUEST_NUMBER_ATTEMPTS + 1):
        document["requestNumber"] = generate_request_number(collection)
        document.pop("_id", None)
        try:
            result = collection.insert_one(document)
        except DuplicateKeyError:
            if attempt == REQUEST_NUMBER_ATTEMPTS:
                raise
            logger.warning("Request number %s collided, retrying", document["requestNumber"])
            continue
        document["_id"] = result.inserted_id
        break

    logger.info("Cashback request %s submitted for customer %s", document["requestNumber"], customer["_id"])
    return document


def _summaries(collection, ids: Iterable[Any], fields: Optional[Iterable[str]]) -> Dict[ObjectId, Dict[str, Any]]:
    wanted = list({value for value in ids if isinstance(value, ObjectId)})
    if not wanted:
        return {}
    projection = {field: 1 for field in fields} if fields else None
    return {doc["_id"]: doc for doc in collection.find({"_id": {"$in": wanted}}, projection)}


def attach_summaries(database, requests: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Add customer/business/offer/invoice sub-documents to each request."""
    customers = _summaries(database["customers"], (r.get("customerId") for r in requests), CUSTOMER_SUMMARY_FIELDS)
    businesses = _summaries(database["vendors"], (r.get("businessId") for r in requests), BUSINESS_SUMMARY_FIELDS)
    offers = _summaries(database["offers"], (r.get("offerId") for r in requests), OFFER_SUMMARY_FIELDS)
    invoices = _summaries(database["invoices"], (r.get("invoiceId") for r in requests), None)

    for request_doc in requests:
        request_doc["customer"] = customers.get(request_doc.get("customerId"))
        request_doc["business"] = businesses.get(request_doc.get("businessId"))
        request_doc["offer"] = offers.get(request_doc.get("offerId"))
        request_doc["invoice"] = invoices.get(request_doc.get("invoiceId"))
    return requests


def stats_by_status(collection, match: Dict[str, Any]) -> List[Dict[str, Any]]:
    pipeline = [
        {"$match": match},
        {
            "$group": {
                "_id": "$requestStatus",
                "count": {"$sum": 1},
                "totalAmount": {"$sum": "$amount"},
            }
        },
        {"$sort": {"_id": 1}},
    ]
    return [
        {"status": row["_id"], "count": row["count"], "totalAmount": row["totalAmount"]}
        for row in collection.aggregate(pipeline)
    ]
