"""Store location routes."""

from datetime import datetime
from typing import Any, Dict

from flask import Blueprint, jsonify, request
from pymongo import ReturnDocument
from werkzeug.exceptions import NotFound

from gomint.core import (
    clean_string,
    compact,
    find_or_404,
    login_required,
    parse_object_id,
    serialize_document,
    validate_object_id,
)

TEXT_FIELDS = ("name", "address", "city", "state", "country", "postalCode", "phone")


def prepare_location_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {field: clean_string(data.get(field), field) for field in TEXT_FIELDS}
    vendor_id = data.get("vendorId")
    payload["vendorId"] = parse_object_id(vendor_id, "vendorId") if vendor_id else None
    return compact(payload)


def register_location_routes(bp: Blueprint, database) -> None:
    locations = database["locations"]

    @bp.post("/locations")
    @login_required()
    def create_location():
        document = prepare_location_payload(request.get_json(silent=True) or {})
        if "vendorId" in document:
            find_or_404(database["vendors"], document["vendorId"], "Vendor not found")
        document["createdAt"] = datetime.utcnow()
        result = locations.insert_one(document)
        return jsonify(serialize_document(locations.find_one({"_id": result.inserted_id}))), 201

    @bp.get("/locations")
    def list_locations():
        query: Dict[str, Any] = {}
        business_id = request.args.get("businessId")
        if business_id:
            query["vendorId"] = parse_object_id(business_id, "businessId")
        return jsonify([serialize_document(doc) for doc in locations.find(query).limit(200)])

    @bp.get("/locations/<location_id>")
    def get_location(location_id: str):
        doc = find_or_404(locations, validate_object_id(location_id, "Location not found"), "Location not found")
        return jsonify(serialize_document(doc))

    @bp.put("/locations/<location_id>")
    @login_required()
    def update_location(location_id: str):
        object_id = validate_object_id(location_id, "Location not found")
        existing = find_or_404(locations, object_id, "Location not found")
        updates = prepare_location_payload({**existing, **(request.get_json(silent=True) or {})})
        updated = locations.find_one_and_update(
            {"_id": object_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise NotFound("Location not found")
        return jsonify(serialize_document(updated))

    @bp.delete("/locations/<location_id>")
    @login_required()
    def delete_location(location_id: str):
        result = locations.delete_one({"_id": validate_object_id(location_id, "Location not found")})
        if result.deleted_count == 0:
            raise NotFound("Location not found")
        return jsonify({"message": "Location deleted successfully"})
