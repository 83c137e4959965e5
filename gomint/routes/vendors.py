"""Vendor (business) profile routes."""

from datetime import datetime
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request
from pymongo import ReturnDocument
from werkzeug.exceptions import BadRequest, NotFound

from gomint.core import clean_string, compact, find_or_404, login_required, serialize_document, validate_object_id

REQUIRED_FIELDS = ("businessName", "currency", "address", "country")


def prepare_vendor_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        field: clean_string(data.get(field), field, required=True) for field in REQUIRED_FIELDS
    }
    payload["logo"] = clean_string(data.get("logo"), "logo")

    locations = data.get("locations") or []
    if not isinstance(locations, list):
        raise BadRequest("locations must be an array")
    payload["locations"] = []
    for entry in locations:
        if not isinstance(entry, dict):
            raise BadRequest("locations entries must be objects")
        payload["locations"].append(
            compact(
                {
                    "address": clean_string(entry.get("address"), "locations.address"),
                    "country": clean_string(entry.get("country"), "locations.country"),
                }
            )
        )
    return compact(payload)


def register_vendor_routes(bp: Blueprint, database) -> None:
    vendors = database["vendors"]

    @bp.get("/vendors")
    def list_vendors():
        return jsonify([serialize_document(doc) for doc in vendors.find().limit(100)])

    @bp.get("/vendors/<vendor_id>")
    def get_vendor(vendor_id: str):
        doc = find_or_404(vendors, validate_object_id(vendor_id, "Vendor not found"), "Vendor not found")
        return jsonify(serialize_document(doc))

    @bp.post("/vendors")
    def create_vendor():
        document = prepare_vendor_payload(request.get_json(silent=True) or {})
        document["createdAt"] = datetime.utcnow()
        result = vendors.insert_one(document)
        current_app.logger.info("Created vendor %s", document["businessName"])
        return jsonify(serialize_document(vendors.find_one({"_id": result.inserted_id}))), 201

    @bp.put("/vendors/<vendor_id>")
    @login_required()
    def update_vendor(vendor_id: str):
        object_id = validate_object_id(vendor_id, "Vendor not found")
        existing = find_or_404(vendors, object_id, "Vendor not found")
        payload = request.get_json(silent=True) or {}
        merged = {**existing, **payload}
        updates = prepare_vendor_payload(merged)
        update: Dict[str, Any] = {"$set": updates}
        # an explicit null or blank logo removes it
        if "logo" in payload and "logo" not in updates:
            update["$unset"] = {"logo": ""}
        updated = vendors.find_one_and_update({"_id": object_id}, update, return_document=ReturnDocument.AFTER)
        if updated is None:
            raise NotFound("Vendor not found")
        return jsonify(serialize_document(updated))

    @bp.delete("/vendors/<vendor_id>")
    @login_required()
    def delete_vendor(vendor_id: str):
        result = vendors.delete_one({"_id": validate_object_id(vendor_id, "Vendor not found")})
        if result.deleted_count == 0:
            raise NotFound("Vendor not found")
        return jsonify({"message": "Vendor deleted successfully"})
