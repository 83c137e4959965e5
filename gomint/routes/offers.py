"""Cashback offer routes."""

from datetime import datetime
from typing import Any, Dict, List

from flask import Blueprint, jsonify, request
from pymongo import ReturnDocument
from werkzeug.exceptions import BadRequest, NotFound

from gomint.core import (
    clean_string,
    compact,
    find_or_404,
    login_required,
    parse_datetime,
    parse_number,
    parse_object_id,
    serialize_document,
    validate_object_id,
)


OPTIONAL_FIELDS = ("description", "imageUrl")


def prepare_offer_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "name": clean_string(data.get("name"), "name", required=True),
        "brand": clean_string(data.get("brand"), "brand", required=True),
        "category": clean_string(data.get("category"), "category", required=True),
        "description": clean_string(data.get("description"), "description"),
        "imageUrl": clean_string(data.get("imageUrl"), "imageUrl"),
        "startDate": parse_datetime(data.get("startDate"), "startDate", required=True),
        "endDate": parse_datetime(data.get("endDate"), "endDate", required=True),
        "minAmount": parse_number(data.get("minAmount"), "minAmount", required=True, minimum=0),
        "maxAmount": parse_number(data.get("maxAmount"), "maxAmount", required=True, minimum=0),
        "cashbackPercent": parse_number(
            data.get("cashbackPercent"), "cashbackPercent", required=True, minimum=0, maximum=100
        ),
        "businessId": parse_object_id(data.get("businessId"), "businessId"),
        "locationId": parse_object_id(data.get("locationId"), "locationId"),
    }
    if payload["endDate"] < payload["startDate"]:
        raise BadRequest("endDate must not be before startDate")
    if payload["maxAmount"] < payload["minAmount"]:
        raise BadRequest("maxAmount must not be less than minAmount")
    return compact(payload)


def register_offer_routes(bp: Blueprint, database) -> None:
    offers = database["offers"]

    def populate(docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        vendor_ids = {doc.get("businessId") for doc in docs if doc.get("businessId")}
        location_ids = {doc.get("locationId") for doc in docs if doc.get("locationId")}
        vendors = {v["_id"]: v for v in database["vendors"].find({"_id": {"$in": list(vendor_ids)}})} if vendor_ids else {}
        locations = (
            {loc["_id"]: loc for loc in database["locations"].find({"_id": {"$in": list(location_ids)}})}
            if location_ids
            else {}
        )
        out = []
        for doc in docs:
            item = serialize_document(doc)
            item["business"] = serialize_document(vendors.get(doc.get("businessId")))
            item["location"] = serialize_document(locations.get(doc.get("locationId")))
            out.append(item)
        return out

    @bp.get("/offers")
    def list_offers():
        query: Dict[str, Any] = {}
        business_id = request.args.get("businessId")
        if business_id:
            query["businessId"] = parse_object_id(business_id, "businessId")
        return jsonify(populate(list(offers.find(query).limit(200))))

    @bp.get("/offers/<offer_id>")
    def get_offer(offer_id: str):
        doc = find_or_404(offers, validate_object_id(offer_id, "Offer not found"), "Offer not found")
        return jsonify(populate([doc])[0])

    @bp.post("/offers")
    def create_offer():
        document = prepare_offer_payload(request.get_json(silent=True) or {})
        find_or_404(database["vendors"], document["businessId"], "Business not found")
        find_or_404(database["locations"], document["locationId"], "Location not found")
        document["createdAt"] = datetime.utcnow()
        result = offers.insert_one(document)
        return jsonify(serialize_document(offers.find_one({"_id": result.inserted_id}))), 201

    @bp.put("/offers/<offer_id>")
    @login_required()
    def update_offer(offer_id: str):
        object_id = validate_object_id(offer_id, "Offer not found")
        existing = find_or_404(offers, object_id, "Offer not found")
        payload = request.get_json(silent=True) or {}
        updates = prepare_offer_payload({**existing, **payload})
        update: Dict[str, Any] = {"$set": updates}
        cleared = {field: "" for field in OPTIONAL_FIELDS if field in payload and field not in updates}
        if cleared:
            update["$unset"] = cleared
        updated = offers.find_one_and_update({"_id": object_id}, update, return_document=ReturnDocument.AFTER)
        if updated is None:
            raise NotFound("Offer not found")
        return jsonify(serialize_document(updated))

    @bp.delete("/offers/<offer_id>")
    @login_required()
    def delete_offer(offer_id: str):
        result = offers.delete_one({"_id": validate_object_id(offer_id, "Offer not found")})
        if result.deleted_count == 0:
            raise NotFound("Offer not found")
        return jsonify({"message": "Offer deleted successfully"})
