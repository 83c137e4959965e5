"""Blueprint factory for API routes."""

from flask import Blueprint

from .auth import register_auth_routes
from .bank_details import register_bank_details_routes
from .cashback_requests import register_cashback_request_routes
from .customers import register_customer_routes
from .invoices import register_invoice_routes
from .locations import register_location_routes
from .offers import register_offer_routes
from .vendors import register_vendor_routes


def create_api_blueprint(database) -> Blueprint:
    bp = Blueprint("api", __name__, url_prefix="/api")

    register_auth_routes(bp, database)
    register_customer_routes(bp, database)
    register_vendor_routes(bp, database)
    register_offer_routes(bp, database)
    register_location_routes(bp, database)
    register_bank_details_routes(bp, database)
    register_invoice_routes(bp, database)
    register_cashback_request_routes(bp, database)

    return bp
