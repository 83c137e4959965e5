"""Demo data for local development. Run with ``python -m gomint.seed``."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict

from gomint.core import configure_logging, ensure_indexes, get_database, get_mongo_client, load_environment

logger = logging.getLogger(__name__)

SEEDED_COLLECTIONS = ("vendors", "locations", "offers", "customers", "invoices", "cashback_requests")


def seed_demo_data(database) -> Dict[str, Any]:
    """Wipe the marketplace collections and insert one of everything."""
    for name in SEEDED_COLLECTIONS:
        database[name].delete_many({})

    now = datetime.utcnow()
    vendor_id = database["vendors"].insert_one(
        {
            "businessName": "Demo Business",
            "currency": "USD",
            "address": "Happy Street, New Town, CA",
            "country": "USA",
            "locations": [],
            "createdAt": now,
        }
    ).inserted_id

    location_id = database["locations"].insert_one(
        {
            "vendorId": vendor_id,
            "name": "Bayside",
            "address": "Happy Street",
            "city": "New Town",
            "state": "CA",
            "country": "USA",
            "postalCode": "00000",
            "phone": "9999999999",
            "createdAt": now,
        }
    ).inserted_id

    offer_id = database["offers"].insert_one(
        {
            "name": "Cashback Offer 10%",
            "brand": "DemoBrand",
            "category": "Shopping",
            "startDate": now,
            "endDate": now + timedelta(days=7),
            "minAmount": 10.0,
            "maxAmount": 100.0,
            "cashbackPercent": 10.0,
            "businessId": vendor_id,
            "locationId": location_id,
            "createdAt": now,
        }
    ).inserted_id

    customer_id = database["customers"].insert_one(
        {
            "firstName": "John",
            "lastName": "Doe",
            "email": "john@example.com",
            "mobile": "9999999999",
            "country": "United States",
            "bankDetails": {
                "acctHolder": "John Doe",
                "bankName": "Demo Bank",
                "acctNumber": "000123456789",
                "ifsc": "DEMO0000001",
                "state": "CA",
                "country": "USA",
            },
            "createdAt": now,
        }
    ).inserted_id

    invoice_id = database["invoices"].insert_one(
        {
            "invoiceNumber": "INV-1",
            "vendorId": vendor_id,
            "operatorName": "Operator",
            "operatorEmail": "op@example.com",
            "invoiceDate": now,
            "totalAmount": 180.0,
            "paymentStatus": "pending",
            "cashbackList": [],
            "createdAt": now,
            "updatedAt": now,
        }
    ).inserted_id

    seeded = {
        "vendor": str(vendor_id),
        "location": str(location_id),
        "offer": str(offer_id),
        "customer": str(customer_id),
        "invoice": str(invoice_id),
    }
    logger.info("Seeded: %s", seeded)
    return seeded


if __name__ == "__main__":
    load_environment()
    configure_logging()
    db = get_database(get_mongo_client())
    ensure_indexes(db)
    seed_demo_data(db)
