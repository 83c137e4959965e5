"""Database helpers and index management."""

import logging
import os
from typing import Any

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, OperationFailure

logger = logging.getLogger(__name__)


def get_mongo_client() -> MongoClient:
    uri = os.environ.get("MONGODB_URI")
    if not uri:
        raise RuntimeError("MONGODB_URI must be set")
    return MongoClient(uri, serverSelectionTimeoutMS=3000, tlsAllowInvalidCertificates=False)


def get_database(client: MongoClient):
    db_name = os.environ.get("MONGODB_DB")
    if db_name:
        return client[db_name]
    database = client.get_default_database()
    if database is None:
        raise RuntimeError("Database name must be provided via connection string or MONGODB_DB")
    return database


def safe_create_index(coll, keys, **opts):
    """
    Create an index but be forgiving:
      - Ignore differing options / specs conflicts (codes 85, 86)
      - Skip if data currently violates a unique index (code 11000)
    """
    try:
        return coll.create_index(keys, **opts)
    except DuplicateKeyError:
        logger.warning("Skipped creating index %s due to duplicate key", opts.get("name") or keys)
        return None
    except OperationFailure as exc:
        code = getattr(exc, "code", None)
        if code in (85, 86):
            # 85 IndexOptionsConflict, 86 IndexKeySpecsConflict
            logger.warning("Ignored conflict for index %s (code %s)", opts.get("name") or keys, code)
            return None
        raise


def ensure_indexes(database: Any) -> None:
    users = database["users"]
    safe_create_index(users, [("username", ASCENDING)], unique=True, name="username_1")

    # customers may register without a mobile, so the unique keys are sparse
    customers = database["customers"]
    safe_create_index(customers, [("email", ASCENDING)], unique=True, sparse=True, name="email_1")
    safe_create_index(customers, [("mobile", ASCENDING)], unique=True, sparse=True, name="mobile_1")
    safe_create_index(customers, [("userId", ASCENDING)], sparse=True)

    locations = database["locations"]
    safe_create_index(locations, [("vendorId", ASCENDING)])

    offers = database["offers"]
    safe_create_index(offers, [("businessId", ASCENDING), ("createdAt", DESCENDING)])

    bank_details = database["bank_details"]
    safe_create_index(
        bank_details, [("accountNumber", ASCENDING)], unique=True, name="accountNumber_1"
    )
    safe_create_index(bank_details, [("ifsc", ASCENDING)])

    invoices = database["invoices"]
    safe_create_index(invoices, [("invoiceNumber", ASCENDING)], unique=True, name="invoiceNumber_1")
    safe_create_index(invoices, [("cashbackRequestId", ASCENDING)], sparse=True)

    requests = database["cashback_requests"]
    safe_create_index(requests, [("customerId", ASCENDING), ("createdAt", DESCENDING)])
    safe_create_index(requests, [("businessId", ASCENDING), ("createdAt", DESCENDING)])
    safe_create_index(requests, [("requestStatus", ASCENDING)])
    safe_create_index(
        requests, [("requestNumber", ASCENDING)], unique=True, name="requestNumber_1"
    )

    logger.info("Indexes ensured.")
