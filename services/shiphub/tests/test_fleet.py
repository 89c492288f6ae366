import pytest


@pytest.fixture
def driver(client):
    resp = client.post("/admin/drivers", json={
        "id": "DRV-1", "userId": "driver-user-1", "name": "Sam Driver", "phoneNumber": "555-0101",
        "licenseNumber": "LIC-42", "createdBy": "admin-1",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def vehicle(client):
    resp = client.post("/admin/vehicles", json={
        "id": "VEH-1", "name": "Blue Van", "type": "Van", "capacity": "1.5t", "plateNumber": "ABC-123",
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
def assigned_request(client, open_request, send_offer):
    """A request whose offer from CMP-1 has been accepted."""
    request = open_request()
    send_offer(request["id"], "CMP-1", 100)
    resp = client.post(f"/requests/{request['id']}/submit-offer", json={"offerId": "CMP-1"})
    assert resp.status_code == 200, resp.text
    return resp.json()["request"]


def _assign(client, request_id, driver_id="DRV-1", vehicle_id="VEH-1"):
    return client.post("/admin/assign", json={
        "requestId": request_id, "driverId": driver_id, "vehicleId": vehicle_id, "assignedBy": "admin-1",
    })


def test_register_driver_and_vehicle(client, driver, vehicle):
    assert driver["name"] == "Sam Driver"
    assert vehicle["status"] == "available"
    assert vehicle["plateNumber"] == "ABC-123"
    assert [d["id"] for d in client.get("/admin/drivers").json()] == ["DRV-1"]
    assert [v["id"] for v in client.get("/admin/vehicles", params={"status": "available"}).json()] == ["VEH-1"]


def test_vehicle_plate_is_unique(client, vehicle):
    resp = client.post("/admin/vehicles", json={"name": "Other", "type": "Truck", "plateNumber": "ABC-123"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "A vehicle with this id or plate number already exists"}


def test_vehicle_type_is_checked(client):
    resp = client.post("/admin/vehicles", json={"name": "Bike", "type": "Bicycle", "plateNumber": "B-1"})
    assert resp.status_code == 400


def test_assign_driver(client, driver, vehicle, assigned_request):
    resp = _assign(client, assigned_request["id"])
    assert resp.status_code == 201
    assignment = resp.json()["assignment"]
    assert assignment["status"] == "Assigned"
    assert assignment["driver"]["name"] == "Sam Driver"
    assert assignment["vehicle"]["status"] == "In Use"

    stored = client.get(f"/requests/{assigned_request['id']}").json()["request"]
    assert stored["requestStatus"] == "In Progress"
    assert stored["deliveryStatus"] == "Pending"
    assert stored["assignedCompanyId"] == "CMP-1"
    assert stored["activityHistory"][-1]["action"] == "driver_assigned"
    assert stored["statusHistory"][-1]["note"] == "Driver Sam Driver dispatched"

    listed = client.get("/admin/assign").json()["assignments"]
    assert [a["requestId"] for a in listed] == [assigned_request["id"]]

    audit = client.get("/admin/audit-logs", params={"action": "DRIVER_ASSIGNED"}).json()["logs"]
    assert audit[0]["changes"] == {"driverId": "DRV-1", "vehicleId": "VEH-1"}
    assert client.get("/admin/audit-logs", params={"userId": "admin-1", "action": "DRIVER_CREATED"}).json()["logs"]


def test_assign_requires_company(client, driver, vehicle, open_request):
    request = open_request()
    resp = _assign(client, request["id"])
    assert resp.status_code == 400
    assert resp.json() == {"error": "Request must be assigned to a company before a driver is dispatched"}
    assert client.get("/admin/vehicles").json()[0]["status"] == "available"


def test_assign_twice(client, driver, vehicle, assigned_request):
    client.post("/admin/vehicles", json={"id": "VEH-2", "name": "Red Truck", "type": "Truck", "plateNumber": "XYZ-9"})
    assert _assign(client, assigned_request["id"]).status_code == 201
    resp = _assign(client, assigned_request["id"], vehicle_id="VEH-2")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Assignment already exists for this request"}


def test_vehicle_in_use_cannot_be_dispatched(client, driver, vehicle, assigned_request, open_request, send_offer):
    assert _assign(client, assigned_request["id"]).status_code == 201
    other = open_request()
    send_offer(other["id"], "CMP-2", 80)
    client.post(f"/requests/{other['id']}/submit-offer", json={"offerId": "CMP-2"})

    resp = _assign(client, other["id"])
    assert resp.status_code == 400
    assert resp.json() == {"error": "Vehicle ABC-123 is not available"}


def test_assign_unknown_driver_or_vehicle(client, driver, vehicle, assigned_request):
    assert _assign(client, assigned_request["id"], driver_id="DRV-404").json() == {"error": "Driver not found"}
    assert _assign(client, assigned_request["id"], vehicle_id="VEH-404").json() == {"error": "Vehicle not found"}
    assert _assign(client, 999).status_code == 404
    resp = client.post("/admin/assign", json={"requestId": assigned_request["id"]})
    assert resp.json() == {"error": "requestId, driverId, and vehicleId are required"}


def test_driver_orders(client, driver, vehicle, assigned_request):
    _assign(client, assigned_request["id"])

    orders = client.get("/driver/orders", params={"driverId": "DRV-1"}).json()["orders"]
    assert len(orders) == 1
    assert orders[0]["request"]["requestNumber"] == assigned_request["requestNumber"]
    assert orders[0]["vehicle"]["plateNumber"] == "ABC-123"

    by_user = client.get("/driver/orders", params={"driverId": "driver-user-1"}).json()["orders"]
    assert [o["id"] for o in by_user] == [orders[0]["id"]]
    assert client.get("/driver/orders", params={"driverId": "DRV-404"}).json() == {"orders": []}


def test_driver_orders_requires_driver(client):
    resp = client.get("/driver/orders")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Driver ID is required"}
