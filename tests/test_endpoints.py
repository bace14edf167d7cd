from datetime import timedelta
from uuid import uuid4

from buzz_rewards.core.config import get_settings
from buzz_rewards.services import mileage_ledger, token_codec
from buzz_rewards.services.token_codec import TokenKind
from buzz_rewards.utils.datetime import local_date, utcnow


def _create_coupon(client, owner_id, **template_fields):
    template_payload = {
        "name": f"welcome-{uuid4().hex[:8]}",
        "discount_kind": "fixed",
        "discount_value": 5000,
    }
    template_payload.update(template_fields)
    template = client.post("/api/v1/coupons/templates", json=template_payload)
    assert template.status_code == 201, template.text

    coupon = client.post(
        "/api/v1/coupons",
        json={"template_id": template.json()["template_id"], "owner_id": str(owner_id)},
    )
    assert coupon.status_code == 201, coupon.text
    return coupon.json()


def test_health(client) -> None:
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_coupon_token_flow(client) -> None:
    owner_id = uuid4()
    business_id = uuid4()
    coupon = _create_coupon(client, owner_id)

    token_response = client.post(
        "/api/v1/redemptions/tokens/coupon",
        json={"coupon_id": coupon["coupon_id"], "owner_id": str(owner_id)},
    )
    assert token_response.status_code == 201, token_response.text
    token = token_response.json()["token"]

    redeemed = client.post(
        "/api/v1/redemptions",
        json={"token": token, "business_id": str(business_id), "customer_id": str(owner_id)},
    )
    assert redeemed.status_code == 201, redeemed.text
    body = redeemed.json()
    assert body["kind"] == "coupon"
    assert body["applied_amount"] == 5000
    assert body["transaction"] is None

    replay = client.post("/api/v1/redemptions", json={"token": token, "business_id": str(uuid4())})
    assert replay.status_code == 409

    listed = client.get("/api/v1/coupons", params={"owner_id": str(owner_id), "status": "used"})
    assert [item["coupon_id"] for item in listed.json()] == [coupon["coupon_id"]]


def test_redemption_error_statuses(client) -> None:
    owner_id = uuid4()
    coupon = _create_coupon(client, owner_id)

    expired = token_codec.encode(
        TokenKind.COUPON, coupon["coupon_id"], issued_at=utcnow() - timedelta(seconds=301)
    )
    response = client.post("/api/v1/redemptions", json={"token": expired, "business_id": str(uuid4())})
    assert response.status_code == 410

    response = client.post("/api/v1/redemptions", json={"token": "not-a-token", "business_id": str(uuid4())})
    assert response.status_code == 400

    missing = token_codec.encode(TokenKind.COUPON, uuid4())
    response = client.post("/api/v1/redemptions", json={"token": missing, "business_id": str(uuid4())})
    assert response.status_code == 404

    fresh = token_codec.encode(TokenKind.COUPON, coupon["coupon_id"])
    response = client.post(
        "/api/v1/redemptions",
        json={"token": fresh, "business_id": str(uuid4()), "customer_id": str(uuid4())},
    )
    assert response.status_code == 403


def test_mileage_flow(client) -> None:
    user_id = uuid4()
    business_id = uuid4()

    earned = client.post("/api/v1/mileage/earn", json={"user_id": str(user_id), "amount": 4000, "reason": "event"})
    assert earned.status_code == 201, earned.text

    too_small = client.post("/api/v1/redemptions/tokens/mileage", json={"user_id": str(user_id), "amount": 500})
    assert too_small.status_code == 400

    issued = client.post("/api/v1/redemptions/tokens/mileage", json={"user_id": str(user_id), "amount": 1500})
    assert issued.status_code == 201, issued.text

    redeemed = client.post(
        "/api/v1/redemptions",
        json={"token": issued.json()["token"], "business_id": str(business_id)},
    )
    assert redeemed.status_code == 201, redeemed.text
    assert redeemed.json()["transaction"]["amount"] == -1500

    account = client.get(f"/api/v1/mileage/{user_id}")
    assert account.json()["balance"] == 2500

    overdraw = client.post(
        "/api/v1/mileage/use",
        json={"user_id": str(user_id), "amount": 9000, "business_id": str(business_id)},
    )
    assert overdraw.status_code == 400

    history = client.get(f"/api/v1/mileage/{user_id}/transactions").json()
    assert [entry["transaction_type"] for entry in history] == ["use", "earn"]
    assert history[0]["balance_after"] == 2500


def test_settlement_flow(client) -> None:
    owner_id = uuid4()
    business_id = uuid4()
    coupon = _create_coupon(client, owner_id, discount_value=3000)
    token = client.post("/api/v1/redemptions/tokens/coupon", json={"coupon_id": coupon["coupon_id"]}).json()["token"]
    client.post("/api/v1/redemptions", json={"token": token, "business_id": str(business_id)})

    today = local_date(utcnow(), get_settings().settlement_timezone).isoformat()
    created = client.post(
        "/api/v1/settlements",
        json={"business_id": str(business_id), "settlement_date": today, "gross_sales": 20000},
    )
    assert created.status_code == 201, created.text
    settlement = created.json()
    assert settlement["coupon_discount_total"] == 3000
    assert settlement["net_payable"] == 17000
    assert settlement["status"] == "pending"
    assert [line["kind"] for line in settlement["lines"]] == ["coupon"]

    duplicate = client.post(
        "/api/v1/settlements",
        json={"business_id": str(business_id), "settlement_date": today, "gross_sales": 1},
    )
    assert duplicate.status_code == 409

    settlement_id = settlement["settlement_id"]
    early_pay = client.post(f"/api/v1/settlements/{settlement_id}/pay", json={"external_reference": "BANK-1"})
    assert early_pay.status_code == 409

    approved = client.post(f"/api/v1/settlements/{settlement_id}/approve", json={"note": "checked"})
    assert approved.json()["status"] == "approved"

    paid = client.post(f"/api/v1/settlements/{settlement_id}/pay", json={"external_reference": "BANK-1"})
    assert paid.json()["status"] == "paid"
    assert paid.json()["payout_reference"] == "BANK-1"

    summary = client.get("/api/v1/settlements/summary", params={"business_id": str(business_id)}).json()
    assert summary["paid"] == {"count": 1, "net_payable": 17000}

    listed = client.get("/api/v1/settlements", params={"business_id": str(business_id), "status": "paid"})
    assert [item["settlement_id"] for item in listed.json()] == [settlement_id]

    assert client.get(f"/api/v1/settlements/{uuid4()}").status_code == 404


def test_future_settlement_date_is_rejected(client) -> None:
    tomorrow = local_date(utcnow(), get_settings().settlement_timezone) + timedelta(days=1)
    response = client.post(
        "/api/v1/settlements",
        json={"business_id": str(uuid4()), "settlement_date": tomorrow.isoformat(), "gross_sales": 1000},
    )
    assert response.status_code == 400


def test_referral_flow(client) -> None:
    user_id = uuid4()
    for _ in range(4):
        assert client.post("/api/v1/referrals", json={"referrer_id": str(user_id)}).status_code == 201

    preview = client.get(f"/api/v1/referrals/{user_id}/rewards").json()
    assert preview["unclaimed_referrals"] == 4
    assert preview["discount"] == {"percent": 15, "minimum_referrals_to_next_tier": 1}

    claimed = client.post("/api/v1/referrals/claim", json={"user_id": str(user_id), "reward_type": "discount"})
    assert claimed.status_code == 200, claimed.text
    assert claimed.json()["coupon"]["owner_id"] == str(user_id)

    again = client.post("/api/v1/referrals/claim", json={"user_id": str(user_id), "reward_type": "mileage"})
    assert again.status_code == 400

    client.post("/api/v1/referrals", json={"referrer_id": str(user_id)})
    next_batch = client.post("/api/v1/referrals/claim", json={"user_id": str(user_id), "reward_type": "mileage"})
    assert next_batch.status_code == 200, next_batch.text
    assert next_batch.json()["mileage_transaction"]["amount"] == 500

    assert client.get(f"/api/v1/referrals/{uuid4()}/rewards").status_code == 404


def test_non_ascii_token_is_rejected_as_malformed(client) -> None:
    for token in ("abc.é", "é.abc"):
        response = client.post("/api/v1/redemptions", json={"token": token, "business_id": str(uuid4())})
        assert response.status_code == 400


def test_direct_mileage_use_enforces_minimum_spend(client) -> None:
    user_id = uuid4()
    client.post("/api/v1/mileage/earn", json={"user_id": str(user_id), "amount": 5000, "reason": "event"})

    below = client.post(
        "/api/v1/mileage/use",
        json={"user_id": str(user_id), "amount": 999, "business_id": str(uuid4())},
    )
    assert below.status_code == 400
    assert client.get(f"/api/v1/mileage/{user_id}").json()["balance"] == 5000

    allowed = client.post(
        "/api/v1/mileage/use",
        json={"user_id": str(user_id), "amount": 1000, "business_id": str(uuid4())},
    )
    assert allowed.status_code == 201, allowed.text
    assert allowed.json()["balance_after"] == 4000


def test_reading_unknown_balance_does_not_open_account(client, session) -> None:
    user_id = uuid4()

    response = client.get(f"/api/v1/mileage/{user_id}")

    assert response.status_code == 200
    assert response.json()["balance"] == 0
    assert response.json()["updated_at"] is None
    assert mileage_ledger.find_account(session, user_id) is None
