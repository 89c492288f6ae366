def test_first_offer_moves_request_to_action_needed(client, open_request, send_offer):
    request = open_request()
    assert send_offer(request["id"], "CMP-1", 100).status_code == 200
    assert send_offer(request["id"], "CMP-2", 90, name="Slow Boat").status_code == 200

    updated = client.get(f"/requests/{request['id']}").json()["request"]
    assert updated["requestStatus"] == "Action needed"
    assert updated["orderFlow"] == ["Pending", "Accepted", "Action needed"]
    advances = [h for h in updated["statusHistory"] if h["status"] == "Action needed"]
    assert len(advances) == 1
    assert advances[0]["role"] == "company"


def test_repeat_offer_updates_in_place(client, open_request, send_offer):
    request = open_request()
    send_offer(request["id"], "CMP-1", 100, comment="first")
    send_offer(request["id"], "CMP-1", 85, comment="cheaper")

    updated = client.get(f"/requests/{request['id']}").json()["request"]
    assert len(updated["costOffers"]) == 1
    offer = updated["costOffers"][0]
    assert offer["cost"] == 85
    assert offer["comment"] == "cheaper"
    assert offer["status"] == "pending"
    actions = [a["action"] for a in updated["activityHistory"]]
    assert actions == ["status_changed", "offer_submitted", "offer_updated"]
    assert updated["activityHistory"][-1]["description"] == "Fast Ship updated their offer to $85"


def test_offer_needs_positive_cost(client, open_request, send_offer):
    request = open_request()
    for cost in (0, -5, None):
        resp = send_offer(request["id"], "CMP-1", cost)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Valid cost amount is required"}
    assert client.get(f"/requests/{request['id']}").json()["request"]["costOffers"] == []


def test_offer_cost_must_be_a_finite_number(client, open_request, send_offer):
    request = open_request()
    for cost in ("100", True, "abc"):
        resp = send_offer(request["id"], "CMP-1", cost)
        assert resp.status_code == 400, cost
        assert resp.json()["error"].startswith("offer.cost")

    # Python's json module reads the Infinity literal as float("inf")
    for literal in ("Infinity", "NaN"):
        resp = client.post(
            "/company/requests",
            content=(
                '{"action": "add-offer", "requestId": %d, "companyId": "CMP-1", '
                '"offer": {"cost": %s}}' % (request["id"], literal)
            ),
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400, literal

    stored = client.get(f"/requests/{request['id']}").json()["request"]
    assert stored["costOffers"] == []
    assert stored["requestStatus"] == "Accepted"


def test_operator_offer_cost_is_validated(client, open_request):
    request = open_request()
    resp = client.put(f"/admin/requests/{request['id']}", json={
        "costOffers": [{"companyId": "CMP-1", "cost": "100"}],
    })
    assert resp.status_code == 400
    assert client.get(f"/requests/{request['id']}").json()["request"]["costOffers"] == []


def test_integer_cost_is_accepted(client, open_request, send_offer):
    request = open_request()
    assert send_offer(request["id"], "CMP-1", 75).status_code == 200
    offer = client.get(f"/requests/{request['id']}").json()["request"]["costOffers"][0]
    assert offer["cost"] == 75


def test_company_action_requires_fields(client):
    resp = client.post("/company/requests", json={"action": "add-offer", "companyId": "CMP-1"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "action, requestId, and companyId are required"}


def test_company_action_unknown_action(client, open_request):
    request = open_request()
    resp = client.post("/company/requests", json={
        "action": "counter-offer", "requestId": request["id"], "companyId": "CMP-1",
    })
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid action"}


def test_offer_on_missing_request(send_offer):
    resp = send_offer(999, "CMP-1", 100)
    assert resp.status_code == 404


def test_company_accepts_offer(client, open_request, send_offer):
    request = open_request()
    send_offer(request["id"], "CMP-1", 100)
    send_offer(request["id"], "CMP-2", 90, name="Slow Boat")

    resp = client.post("/company/accept-offer", json={"requestId": request["id"], "companyId": "CMP-2"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Offer accepted successfully"
    accepted = body["request"]
    assert accepted["assignedCompanyId"] == "CMP-2"
    assert accepted["cost"] == 90
    by_company = {o["companyId"]: o for o in accepted["costOffers"]}
    assert by_company["CMP-2"]["selected"] is True
    assert by_company["CMP-2"]["status"] == "accepted"
    assert by_company["CMP-1"]["selected"] is False
    assert by_company["CMP-1"]["status"] == "rejected"
    assert sum(1 for o in accepted["costOffers"] if o["selected"]) == 1


def test_second_acceptance_is_refused(client, open_request, send_offer):
    request = open_request()
    send_offer(request["id"], "CMP-1", 100)
    send_offer(request["id"], "CMP-2", 90, name="Slow Boat")
    assert client.post("/company/accept-offer", json={"requestId": request["id"], "companyId": "CMP-1"}).status_code == 200

    resp = client.post(f"/requests/{request['id']}/submit-offer", json={"offerId": "CMP-2"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "This request has already been assigned to a company"}

    current = client.get(f"/requests/{request['id']}").json()["request"]
    assert current["assignedCompanyId"] == "CMP-1"
    assert [a["action"] for a in current["activityHistory"]].count("offer_accepted") == 1


def test_offer_after_assignment_is_refused(client, open_request, send_offer):
    request = open_request()
    send_offer(request["id"], "CMP-1", 100)
    client.post(f"/requests/{request['id']}/submit-offer", json={"offerId": "CMP-1"})

    resp = send_offer(request["id"], "CMP-2", 50, name="Slow Boat")
    assert resp.status_code == 400
    assert resp.json() == {"error": "This request has already been assigned to another company"}

    resp = send_offer(request["id"], "CMP-1", 50)
    assert resp.status_code == 400
    assert resp.json() == {"error": "This request has already been assigned to a company"}


def test_submit_offer_by_offer_id(client, open_request, send_offer):
    request = open_request()
    send_offer(request["id"], "CMP-1", 100)
    offer_id = client.get(f"/requests/{request['id']}").json()["request"]["costOffers"][0]["id"]

    resp = client.post(f"/requests/{request['id']}/submit-offer", json={"offerId": offer_id})
    assert resp.status_code == 200
    assert resp.json()["request"]["assignedCompanyId"] == "CMP-1"


def test_submit_offer_requires_offer_id(client, open_request):
    request = open_request()
    resp = client.post(f"/requests/{request['id']}/submit-offer", json={})
    assert resp.status_code == 400
    assert resp.json() == {"error": "offerId is required"}


def test_submit_unknown_offer(client, open_request, send_offer):
    request = open_request()
    send_offer(request["id"], "CMP-1", 100)
    resp = client.post(f"/requests/{request['id']}/submit-offer", json={"offerId": "CMP-9"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Selected offer not found"}


def test_accept_on_closed_request(client, open_request, send_offer):
    request = open_request()
    send_offer(request["id"], "CMP-1", 100)
    client.put("/admin/orders", json={"requestId": request["id"], "requestStatus": "Cancelled"})

    resp = client.post("/company/accept-offer", json={"requestId": request["id"], "companyId": "CMP-1"})
    assert resp.status_code == 400
    assert "Cancelled" in resp.json()["error"]


def test_accept_offer_requires_fields(client):
    resp = client.post("/company/accept-offer", json={"companyId": "CMP-1"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "requestId is required"}
