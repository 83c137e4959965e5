from bson import ObjectId


def _invoice_payload(vendor_id, **overrides):
    payload = {
        "invoiceNumber": "INV-200",
        "vendorId": vendor_id,
        "operatorName": "Olive",
        "operatorEmail": "Olive@Example.com",
        "invoiceDate": "2024-05-01T10:00:00Z",
        "totalAmount": 120,
    }
    payload.update(overrides)
    return payload


def _linked_request(client, customer_headers, operator_headers, marketplace):
    request_id = client.post(
        "/api/cashback-requests",
        json={
            "customerId": marketplace["customer_id"],
            "businessId": marketplace["vendor_id"],
            "amount": 40,
            "cashbackPercent": 10,
        },
        headers=customer_headers,
    ).get_json()["requestId"]
    client.put(f"/api/cashback-requests/{request_id}/approve", json={"approvedBy": "Olive"}, headers=operator_headers)
    client.put(
        f"/api/cashback-requests/{request_id}/link-invoice",
        json={"invoiceId": marketplace["invoice_id"]},
        headers=operator_headers,
    )
    return request_id


def test_create_invoice(client, operator_headers, marketplace):
    res = client.post("/api/invoices", json=_invoice_payload(marketplace["vendor_id"]), headers=operator_headers)
    assert res.status_code == 201, res.get_json()
    body = res.get_json()
    assert body["paymentStatus"] == "pending"
    assert body["operatorEmail"] == "olive@example.com"
    assert body["invoiceDate"] == "2024-05-01T10:00:00Z"
    assert body["cashbackList"] == []


def test_create_invoice_validation(client, operator_headers, marketplace):
    res = client.post(
        "/api/invoices", json=_invoice_payload(marketplace["vendor_id"], totalAmount=-5), headers=operator_headers
    )
    assert res.status_code == 400
    res = client.post(
        "/api/invoices",
        json=_invoice_payload(marketplace["vendor_id"], paymentStatus="lost"),
        headers=operator_headers,
    )
    assert res.status_code == 400
    res = client.post(
        "/api/invoices", json=_invoice_payload(marketplace["vendor_id"], invoiceDate=None), headers=operator_headers
    )
    assert res.status_code == 400


def test_duplicate_invoice_number(client, operator_headers, marketplace):
    payload = _invoice_payload(marketplace["vendor_id"], invoiceNumber="INV-100")
    res = client.post("/api/invoices", json=payload, headers=operator_headers)
    assert res.status_code == 409


def test_create_invoice_requires_auth(client, marketplace):
    res = client.post("/api/invoices", json=_invoice_payload(marketplace["vendor_id"]))
    assert res.status_code == 401


def test_paying_invoice_pays_linked_request(client, customer_headers, operator_headers, marketplace, database):
    request_id = _linked_request(client, customer_headers, operator_headers, marketplace)

    res = client.put(
        f"/api/invoices/{marketplace['invoice_id']}", json={"paymentStatus": "paid"}, headers=operator_headers
    )
    assert res.status_code == 200
    body = res.get_json()
    assert body["paymentStatus"] == "paid"
    assert body["cashbackRequestSync"] == {"applied": True, "status": "paid"}

    stored = database["cashback_requests"].find_one({"_id": ObjectId(request_id)})
    assert stored["requestStatus"] == "paid"
    assert stored["paymentStatus"] == "paid"


def test_failed_invoice_rejects_linked_request(client, customer_headers, operator_headers, marketplace, database):
    request_id = _linked_request(client, customer_headers, operator_headers, marketplace)
    client.put(f"/api/invoices/{marketplace['invoice_id']}", json={"paymentStatus": "failed"}, headers=operator_headers)
    stored = database["cashback_requests"].find_one({"_id": ObjectId(request_id)})
    assert stored["requestStatus"] == "rejected"
    assert stored["paymentStatus"] == "failed"


def test_sync_skips_cancelled_request(client, customer_headers, operator_headers, marketplace, database):
    request_id = _linked_request(client, customer_headers, operator_headers, marketplace)
    client.delete(f"/api/cashback-requests/{request_id}", headers=operator_headers)

    res = client.put(
        f"/api/invoices/{marketplace['invoice_id']}", json={"paymentStatus": "paid"}, headers=operator_headers
    )
    assert res.status_code == 200
    assert res.get_json()["cashbackRequestSync"]["applied"] is False
    stored = database["cashback_requests"].find_one({"_id": ObjectId(request_id)})
    assert stored["requestStatus"] == "cancelled"
    assert stored["paymentStatus"] == "pending"


def test_update_without_status_change_does_not_sync(client, customer_headers, operator_headers, marketplace):
    _linked_request(client, customer_headers, operator_headers, marketplace)
    res = client.put(
        f"/api/invoices/{marketplace['invoice_id']}", json={"operatorName": "Otto"}, headers=operator_headers
    )
    assert res.status_code == 200
    assert "cashbackRequestSync" not in res.get_json()


def test_list_invoices_by_request(client, customer_headers, operator_headers, marketplace):
    request_id = _linked_request(client, customer_headers, operator_headers, marketplace)
    res = client.get(f"/api/invoices?cashbackRequestId={request_id}")
    rows = res.get_json()
    assert [row["id"] for row in rows] == [marketplace["invoice_id"]]


def test_add_cashback_item(client, operator_headers, marketplace):
    res = client.post(
        f"/api/invoices/{marketplace['invoice_id']}/cashback",
        json={"mobile": "5550001", "amount": 4.5},
        headers=operator_headers,
    )
    assert res.status_code == 201
    assert res.get_json()["cashbackList"] == [{"mobile": "5550001", "amount": 4.5, "status": "pending"}]

    res = client.post(
        f"/api/invoices/{marketplace['invoice_id']}/cashback", json={"mobile": "5550001"}, headers=operator_headers
    )
    assert res.status_code == 400


def test_get_and_delete_invoice(client, operator_headers, marketplace):
    assert client.get(f"/api/invoices/{marketplace['invoice_id']}").status_code == 200
    res = client.delete(f"/api/invoices/{marketplace['invoice_id']}", headers=operator_headers)
    assert res.status_code == 200
    assert client.get(f"/api/invoices/{marketplace['invoice_id']}").status_code == 404
    assert client.delete(f"/api/invoices/{marketplace['invoice_id']}", headers=operator_headers).status_code == 404
