import json

import httpx
import pytest

from conftest import credit_card, network_tokenization_credit_card, stub_comms
from gateway_connect.billing.errors import OAuthResponseError, ResponseError
from gateway_connect.gateways.checkout_v2.adapter import INVALID_JSON_MESSAGE, CheckoutV2Gateway
from gateway_connect.settings import settings

ACCESS_TOKEN = json.dumps({"access_token": "12345678", "expires_in": 3600, "token_type": "Bearer", "scope": "gateway"})

SUCCESSFUL_PURCHASE = json.dumps({
    "id": "pay_bgv5tmah6fmuzcmcrcro6exe6m",
    "action_id": "act_bgv5tmah6fmuzcmcrcro6exe6m",
    "amount": 200,
    "currency": "USD",
    "approved": True,
    "status": "Authorized",
    "auth_code": "127172",
    "response_code": "10000",
    "response_summary": "Approved",
    "source": {
        "id": "src_fzp3cwkf4ygebbmvrxdhyrwmbm",
        "type": "card",
        "expiry_month": 6,
        "expiry_year": 2025,
        "name": "Longbob Longsen",
        "scheme": "Visa",
        "last4": "4242",
        "avs_check": "S",
        "cvv_check": "Y",
    },
    "customer": {"id": "cus_tz76qzbwr44ezdfyzdvrvlwogy", "email": "longbob.longsen@example.com"},
    "reference": "1",
})

FAILED_PURCHASE = json.dumps({
    "id": "pay_awjzhfj776gulbp2nuslj4agbu",
    "amount": 200,
    "currency": "USD",
    "reference": "1",
    "response_summary": "Invalid Card Number",
    "response_code": "20014",
    "source": {"cvvCheck": "Y", "avsCheck": "S"},
})

FAILED_PURCHASE_3DS = json.dumps({
    "id": "pay_awjzhfj776gulbp2nuslj4agbu",
    "status": "Declined",
    "approved": False,
    "actions": [{
        "id": "act_tkvif5mf54eerhd3ysuawfcnt4",
        "type": "Authorization",
        "response_code": "20051",
        "response_summary": "Insufficient Funds",
    }],
})

SUCCESSFUL_ACTION = json.dumps({"action_id": "act_2f56bhkau5dubequbv5aa6w4qi", "reference": "1"})

CAPTURE_WITH_PAYMENT_LINK = json.dumps({
    "action_id": "act_2f56bhkau5dubequbv5aa6w4qi",
    "reference": "1",
    "_links": {"payment": {"href": "https://api.sandbox.checkout.com/payments/pay_fj3xswqe3emuxckocjx6td73ni"}},
})

SUCCESSFUL_INCREMENTAL_AUTHORIZE = json.dumps({
    "action_id": "act_q4dbxom5jbgudnjzjpz7j2z6uq",
    "amount": 50,
    "approved": True,
    "status": "Authorized",
    "response_code": "10000",
    "response_summary": "Approved",
})

SUCCESSFUL_CREDIT = json.dumps({
    "id": "pay_jhzh3u7vxcgezlcek7ymzyy6be",
    "status": "Pending",
    "reference": "ORD-5023-4E89",
    "instruction": {"value_date": "2022-08-09T06:11:37.2306547+00:00"},
})

SUCCESSFUL_VERIFY_PAYMENT = json.dumps({
    "id": "pay_tkvif5mf54eerhd3ysuawfcnt4",
    "status": "Authorized",
    "approved": True,
    "source": {"id": "src_lot2ch4ygk3ehi4fugxmk7r2di", "type": "card", "avs_check": "S", "cvv_check": "Y"},
    "actions": [{"id": "act_tkvif5mf54eerhd3ysuawfcnt4", "type": "Authorization",
                 "response_code": "10000", "response_summary": "Approved"}],
})

SUCCESSFUL_VERIFY = json.dumps({
    "id": "pay_ij6bctwxpzdulm53xyksio7gm4",
    "action_id": "act_ij6bctwxpzdulm53xyksio7gm4",
    "amount": 0,
    "approved": True,
    "status": "Card Verified",
    "response_code": "10000",
    "response_summary": "Approved",
    "source": {"id": "src_nica37p5k7aufhs3rsv2te7xye", "type": "card", "scheme": "Visa", "last4": "4242"},
    "customer": {"id": "cus_r2yb7f2upmsuhm6nbruoqn657y", "email": "longbob.longsen@example.com"},
})

SUCCESSFUL_TOKEN = json.dumps({
    "type": "card",
    "token": "tok_267wy4hwrpietkmbbp5iswwhvm",
    "expires_on": "2023-01-03T20:18:49.0006481Z",
    "expiry_month": 6,
    "expiry_year": 2025,
    "scheme": "VISA",
    "last4": "4242",
})

SUCCESSFUL_STORE = json.dumps({
    "id": "src_vzzqipykt5ke5odazx5d7nikii",
    "type": "card",
    "expiry_month": 6,
    "expiry_year": 2025,
    "scheme": "VISA",
    "last4": "4242",
    "customer": {"id": "cus_gmthnluatgounpoiyzbmn5fvua", "email": "longbob.longsen@example.com"},
})

ERROR_CODE_RESPONSE = json.dumps({
    "request_id": "e5a3ce6f-a4e9-4445-9ec7-e5975e9a6213",
    "error_type": "request_invalid",
    "error_codes": ["card_expired"],
})

ERROR_TYPE_WITHOUT_CODES = json.dumps({
    "request_id": "e5a3ce6f-a4e9-4445-9ec7-e5975e9a6213",
    "error_type": "request_invalid",
})

INVALID_JSON = '{"id": "pay_123",'

PRE_SCRUBBED = r'''
  <- "POST /payments HTTP/1.1\r\nContent-Type: application/json;charset=UTF-8\r\nAuthorization: sk_test_ab12301d-e432-4ea7-97d1-569809518aaf\r\nAccept: */*\r\nHost: api.checkout.com\r\n\r\n"
  <- "{\"capture\":false,\"amount\":\"200\",\"reference\":\"1\",\"currency\":\"USD\",\"source\":{\"type\":\"card\",\"name\":\"Longbob Longsen\",\"number\":\"4242424242424242\",\"cvv\":\"100\",\"expiry_year\":\"2025\"
'''

POST_SCRUBBED = r'''
  <- "POST /payments HTTP/1.1\r\nContent-Type: application/json;charset=UTF-8\r\nAuthorization: [FILTERED]\r\nAccept: */*\r\nHost: api.checkout.com\r\n\r\n"
  <- "{\"capture\":false,\"amount\":\"200\",\"reference\":\"1\",\"currency\":\"USD\",\"source\":{\"type\":\"card\",\"name\":\"Longbob Longsen\",\"number\":\"[FILTERED]\",\"cvv\":\"[FILTERED]\",\"expiry_year\":\"2025\"
'''

NETWORK_TOKEN_PRE_SCRUBBED = r'''
  <- "{\"amount\":\"100\",\"source\":{\"type\":\"network_token\",\"token\":\"4242424242424242\",\"token_type\":\"applepay\",\"cryptogram\":\"AgAAAAAAAIR8CQrXcIhbQAAAAAA\",\"eci\":\"05\"}}"
'''


@pytest.fixture
def gateway():
    return CheckoutV2Gateway(secret_key="1111111111111")


@pytest.fixture
def oauth_gateway():
    return CheckoutV2Gateway(client_id="abcd", client_secret="1234")


class TestCheckoutV2Gateway:
    def test_successful_purchase(self, gateway, card, billing_address):
        options = {"order_id": "1", "billing_address": billing_address, "email": "longbob.longsen@example.com"}
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            response = gateway.purchase(200, card, options)

        assert response.success
        assert response.message == "Succeeded"
        assert response.authorization == "pay_bgv5tmah6fmuzcmcrcro6exe6m"
        assert response.avs_result["code"] == "S"
        assert response.cvv_result["code"] == "Y"

        method, url, data, headers = comms.last
        assert method == "POST"
        assert url == "https://api.sandbox.checkout.com/payments"
        assert headers["Authorization"] == "Bearer 1111111111111"
        assert headers["Content-Type"] == "application/json;charset=UTF-8"
        assert '"metadata":{"udf5":"ActiveMerchant"}' in data
        assert '"amount":"200"' in data
        body = json.loads(data)
        assert "capture" not in body
        assert body["reference"] == "1"
        assert body["customer"] == {"email": "longbob.longsen@example.com", "name": "Longbob Longsen"}
        source = body["source"]
        assert source["type"] == "card"
        assert source["number"] == "4242424242424242"
        assert source["cvv"] == "123"
        assert source["expiry_month"] == "09"
        assert source["phone"] == {"number": "(555)555-5555"}
        assert source["billing_address"]["address_line1"] == "456 My Street"

    def test_failed_purchase(self, gateway, declined_card):
        with stub_comms(gateway, [FAILED_PURCHASE]):
            response = gateway.purchase(200, declined_card)

        assert not response.success
        assert response.message == "Invalid Card Number"
        assert response.error_code == "invalid_number"
        assert response.avs_result["code"] is None

    def test_failed_purchase_reads_summary_from_actions(self, gateway, card):
        with stub_comms(gateway, [FAILED_PURCHASE_3DS]):
            response = gateway.purchase(100, card)

        assert not response.success
        assert response.message == "Insufficient Funds"
        assert response.error_code is None

    def test_zero_decimal_currency(self, gateway, card):
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(10000, card, {"currency": "JPY"})
        body = json.loads(comms.data)
        assert body["amount"] == "100"
        assert body["currency"] == "JPY"

    def test_application_id_overrides_udf5(self, card):
        gateway = CheckoutV2Gateway(secret_key="1111111111111", application_id="Shopify")
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, card, {"metadata": {"coupon_code": "NY2018"}})
        assert json.loads(comms.data)["metadata"] == {"udf5": "Shopify", "coupon_code": "NY2018"}

    def test_mada_card_flagged_in_metadata(self, gateway):
        mada = credit_card("5043000000000000", brand="mada")
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, mada)
        assert json.loads(comms.data)["metadata"]["udf1"] == "mada"

    def test_purchase_with_token_and_source_id(self, gateway):
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE, SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, "tok_267wy4hwrpietkmbbp5iswwhvm")
            gateway.purchase(100, "src_vzzqipykt5ke5odazx5d7nikii")

        first, second = (json.loads(call[2])["source"] for call in comms.calls)
        assert first == {"type": "token", "token": "tok_267wy4hwrpietkmbbp5iswwhvm", "phone": {"number": None}}
        assert second == {"type": "id", "id": "src_vzzqipykt5ke5odazx5d7nikii", "phone": {"number": None}}

    def test_purchase_with_apple_pay(self, gateway):
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, network_tokenization_credit_card())

        source = json.loads(comms.data)["source"]
        assert source["type"] == "network_token"
        assert source["token_type"] == "applepay"
        assert source["token"] == "4242424242424242"
        assert source["cryptogram"] == "EHuWW9PiBkWvqE5juRwDzAUFBAk="
        assert source["eci"] == "05"

    def test_purchase_with_google_pay(self, gateway):
        payment = network_tokenization_credit_card(source="google_pay", eci=None)
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, payment)

        source = json.loads(comms.data)["source"]
        assert source["token_type"] == "googlepay"
        assert "eci" not in source

    def test_visa_network_token_defaults_eci(self, gateway):
        payment = network_tokenization_credit_card(source="network_token", eci=None)
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, payment)

        source = json.loads(comms.data)["source"]
        assert source["token_type"] == "vts"
        assert source["eci"] == "05"

    def test_initial_stored_credential(self, gateway, card):
        stored = {"initiator": "cardholder", "reason_type": "installment", "initial_transaction": True}
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, card, {"stored_credential": stored})

        body = json.loads(comms.data)
        assert body["merchant_initiated"] is False
        assert body["payment_type"] == "Installment"
        assert "stored" not in body["source"]

    def test_subsequent_merchant_initiated_stored_credential(self, gateway, card):
        stored = {"initiator": "merchant", "reason_type": "recurring", "initial_transaction": False,
                  "network_transaction_id": "pay_7jcf4ovmwnqedhtldca3fjli2y"}
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, card, {"stored_credential": stored})

        body = json.loads(comms.data)
        assert body["merchant_initiated"] is True
        assert body["payment_type"] == "Recurring"
        assert body["source"]["stored"] is True
        assert body["previous_payment_id"] == "pay_7jcf4ovmwnqedhtldca3fjli2y"

    def test_unscheduled_cardholder_initiated_is_regular(self, gateway, card):
        stored = {"initiator": "cardholder", "reason_type": "unscheduled", "initial_transaction": True}
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, card, {"stored_credential": stored})
        assert json.loads(comms.data)["payment_type"] == "Regular"

    def test_moto_flag(self, gateway, card):
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, card, {"metadata": {"manual_entry": True}})
        assert json.loads(comms.data)["payment_type"] == "MOTO"

    def test_three_d_secure(self, gateway, card):
        three_ds = {"version": "2.1.0", "eci": "05", "cavv": "AgAAAAAAAIR8CQrXcIhbQAAAAAA",
                    "ds_transaction_id": "ds-1", "authentication_response_status": "Y"}
        options = {"three_d_secure": three_ds, "callback_url": "https://shop.example/3ds", "attempt_n3d": True}
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, card, options)

        body = json.loads(comms.data)
        assert body["3ds"] == {
            "enabled": True,
            "attempt_n3d": True,
            "eci": "05",
            "cryptogram": "AgAAAAAAAIR8CQrXcIhbQAAAAAA",
            "version": "2.1.0",
            "xid": "ds-1",
            "status": "Y",
        }
        assert body["success_url"] == "https://shop.example/3ds?status=success"
        assert body["failure_url"] == "https://shop.example/3ds?status=failure"

    def test_level_two_and_three_fields(self, gateway, card):
        options = {
            "tax_number": "123",
            "invoice_id": "INV-1",
            "tax_amount": 10,
            "shipping_amount": 5,
            "from_address_zip": "10001",
            "line_items": [{"name": "Box", "quantity": 2, "unit_price": 50, "ignored": "x"}],
        }
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, card, options)

        body = json.loads(comms.data)
        assert body["customer"]["tax_number"] == "123"
        assert body["processing"] == {"order_id": "INV-1", "tax_amount": 10, "shipping_amount": 5}
        assert body["shipping"] == {"from_address_zip": "10001"}
        assert body["items"] == [{"name": "Box", "quantity": 2, "unit_price": 50}]

    def test_idempotency_key_header(self, gateway, card):
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, card, {"idempotency_key": "test123"})
        assert comms.headers["Cko-Idempotency-Key"] == "test123"

    def test_successful_authorize(self, gateway, card):
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]) as comms:
            response = gateway.authorize(200, card)

        assert response.success
        assert response.authorization == "pay_bgv5tmah6fmuzcmcrcro6exe6m"
        assert '"capture":false' in comms.data

    def test_incremental_authorization(self, gateway, card):
        with stub_comms(gateway, [SUCCESSFUL_INCREMENTAL_AUTHORIZE]) as comms:
            response = gateway.authorize(50, card, {"incremental_authorization": "pay_tqgk5c6k2nnexagtcuom5ktlua"})

        assert response.success
        assert comms.last[1] == "https://api.sandbox.checkout.com/payments/pay_tqgk5c6k2nnexagtcuom5ktlua/authorizations"

    def test_successful_capture(self, gateway):
        with stub_comms(gateway, [SUCCESSFUL_ACTION]) as comms:
            response = gateway.capture(200, "pay_fj3xswqe3emuxckocjx6td73ni", {"capture_type": "NonFinal"})

        assert response.success
        method, url, data, _ = comms.last
        assert url == "https://api.sandbox.checkout.com/payments/pay_fj3xswqe3emuxckocjx6td73ni/captures"
        body = json.loads(data)
        assert body["amount"] == "200"
        assert body["capture_type"] == "NonFinal"

    def test_capture_takes_payment_id_from_links(self, gateway):
        with stub_comms(gateway, [CAPTURE_WITH_PAYMENT_LINK]):
            response = gateway.capture(200, "pay_fj3xswqe3emuxckocjx6td73ni")
        assert response.authorization == "pay_fj3xswqe3emuxckocjx6td73ni"

    def test_successful_refund(self, gateway):
        with stub_comms(gateway, [SUCCESSFUL_ACTION]) as comms:
            response = gateway.refund(100, "pay_bgv5tmah6fmuzcmcrcro6exe6m")

        assert response.success
        assert comms.last[1].endswith("/payments/pay_bgv5tmah6fmuzcmcrcro6exe6m/refunds")

    def test_successful_void(self, gateway):
        with stub_comms(gateway, [SUCCESSFUL_ACTION]) as comms:
            response = gateway.void("pay_bgv5tmah6fmuzcmcrcro6exe6m", {"metadata": {"reason": "dup"}})

        assert response.success
        assert comms.last[1].endswith("/payments/pay_bgv5tmah6fmuzcmcrcro6exe6m/voids")
        assert json.loads(comms.data) == {"metadata": {"udf5": "ActiveMerchant", "reason": "dup"}}

    def test_successful_verify_is_zero_dollar_auth(self, gateway, card):
        with stub_comms(gateway, [SUCCESSFUL_VERIFY]) as comms:
            response = gateway.verify(card)

        assert response.success
        assert len(comms.calls) == 1
        body = json.loads(comms.data)
        assert body["amount"] == "0"
        assert body["capture"] is False

    def test_verify_payment(self, gateway):
        with stub_comms(gateway, [SUCCESSFUL_VERIFY_PAYMENT]) as comms:
            response = gateway.verify_payment("pay_tkvif5mf54eerhd3ysuawfcnt4")

        assert response.success
        method, url, data, _ = comms.last
        assert method == "GET"
        assert url == "https://api.sandbox.checkout.com/payments/pay_tkvif5mf54eerhd3ysuawfcnt4"
        assert data is None

    def test_successful_credit(self, gateway, card):
        options = {"source_type": "currency_account", "source_id": "ca_spwmped4qmqenai7hcghquqle4",
                   "account_holder_type": "individual", "instruction_purpose": "leisure"}
        with stub_comms(gateway, [SUCCESSFUL_CREDIT]) as comms:
            response = gateway.credit(100, card, options)

        assert response.success
        assert response.authorization == "pay_jhzh3u7vxcgezlcek7ymzyy6be"
        body = json.loads(comms.data)
        assert body["source"] == {"type": "currency_account", "id": "ca_spwmped4qmqenai7hcghquqle4"}
        assert body["instruction"] == {"funds_transfer_type": "FD", "purpose": "leisure"}
        assert body["destination"]["type"] == "card"
        assert body["destination"]["account_holder"] == {
            "type": "individual", "first_name": "Longbob", "last_name": "Longsen",
        }

    def test_credit_is_successful_only_when_pending(self, gateway, card):
        with stub_comms(gateway, [SUCCESSFUL_PURCHASE]):
            assert not gateway.credit(100, card, {}).success

    def test_successful_store(self, gateway, card):
        with stub_comms(gateway, [SUCCESSFUL_TOKEN, SUCCESSFUL_STORE]) as comms:
            response = gateway.store(card, {"email": "longbob.longsen@example.com"})

        assert response.success
        assert response.authorization == "src_vzzqipykt5ke5odazx5d7nikii"
        token_call, store_call = comms.calls
        assert token_call[1] == "https://api.sandbox.checkout.com/tokens"
        assert json.loads(token_call[2])["number"] == "4242424242424242"
        assert store_call[1] == "https://api.sandbox.checkout.com/instruments"
        body = json.loads(store_call[2])
        assert body["type"] == "token"
        assert body["token"] == "tok_267wy4hwrpietkmbbp5iswwhvm"
        assert body["customer"] == {"email": "longbob.longsen@example.com"}

    def test_store_tokenizes_with_public_key(self, card):
        gateway = CheckoutV2Gateway(secret_key="sk_test", public_key="pk_test")
        with stub_comms(gateway, [SUCCESSFUL_TOKEN, SUCCESSFUL_STORE]) as comms:
            gateway.store(card)

        assert comms.calls[0][3]["Authorization"] == "pk_test"
        assert comms.calls[1][3]["Authorization"] == "Bearer sk_test"

    def test_failed_tokenization_stops_store(self, gateway, card):
        error = ResponseError(httpx.Response(422, text=ERROR_CODE_RESPONSE))
        with stub_comms(gateway, [error]) as comms:
            response = gateway.store(card)

        assert not response.success
        assert len(comms.calls) == 1

    def test_store_network_token_uses_verify_source(self, gateway):
        with stub_comms(gateway, [SUCCESSFUL_VERIFY]) as comms:
            response = gateway.store(network_tokenization_credit_card())

        assert response.success
        assert response.authorization == "src_nica37p5k7aufhs3rsv2te7xye"
        assert response.params["customer"]["id"] == "cus_r2yb7f2upmsuhm6nbruoqn657y"
        assert len(comms.calls) == 1

    def test_successful_unstore(self, gateway):
        with stub_comms(gateway, [""]) as comms:
            response = gateway.unstore("src_vzzqipykt5ke5odazx5d7nikii")

        assert response.success
        assert response.authorization is None
        method, url, data, _ = comms.last
        assert method == "DELETE"
        assert url == "https://api.sandbox.checkout.com/instruments/src_vzzqipykt5ke5odazx5d7nikii"
        assert data is None

    def test_error_code_response(self, gateway, card):
        with stub_comms(gateway, [ResponseError(httpx.Response(422, text=ERROR_CODE_RESPONSE))]):
            response = gateway.purchase(100, card)

        assert not response.success
        assert response.message == "request_invalid: card_expired"
        assert response.error_code == "request_invalid: card_expired"

    def test_error_type_without_error_codes(self, gateway, card):
        with stub_comms(gateway, [ResponseError(httpx.Response(422, text=ERROR_TYPE_WITHOUT_CODES))]):
            response = gateway.purchase(100, card)

        assert response.message == "request_invalid"
        assert response.error_code == "request_invalid"

    def test_4xx_with_empty_body(self, gateway, card):
        with stub_comms(gateway, [ResponseError(httpx.Response(401, text=""))]):
            response = gateway.purchase(100, card)

        assert not response.success
        assert response.message == "401: Unauthorized"
        assert response.error_code == "401: Unauthorized"

    def test_5xx_is_raised(self, gateway, card):
        with stub_comms(gateway, [ResponseError(httpx.Response(500, text="boom"))]):
            with pytest.raises(ResponseError):
                gateway.purchase(100, card)

    def test_invalid_json(self, gateway, card):
        with stub_comms(gateway, [INVALID_JSON]):
            response = gateway.purchase(100, card)

        assert not response.success
        assert response.message == INVALID_JSON_MESSAGE
        assert response.params["raw_response"] == INVALID_JSON

    def test_connection_failure(self, gateway, card):
        with stub_comms(gateway, [httpx.ConnectError("connection refused")]):
            response = gateway.purchase(100, card)
        assert response.message == "Connection error: connection refused"

    def test_oauth_fetches_access_token_first(self, oauth_gateway, card):
        with stub_comms(oauth_gateway, [ACCESS_TOKEN, SUCCESSFUL_PURCHASE]) as comms:
            response = oauth_gateway.purchase(100, card)

        assert response.success
        token_call, payment_call = comms.calls
        assert token_call[0] == "POST"
        assert token_call[1] == "https://access.sandbox.checkout.com/connect/token"
        assert token_call[2] == "grant_type=client_credentials"
        assert token_call[3]["Authorization"] == "Basic YWJjZDoxMjM0"
        assert payment_call[3]["Authorization"] == "Bearer 12345678"

    def test_oauth_failure_raises(self, oauth_gateway, card):
        with stub_comms(oauth_gateway, [ResponseError(httpx.Response(400, text='{"error":"invalid_client"}'))]):
            with pytest.raises(OAuthResponseError, match="Failed with 400"):
                oauth_gateway.purchase(100, card)

    @pytest.mark.parametrize("body", ["<html>Bad Gateway</html>", '{"token_type": "Bearer"}', "[]"])
    def test_unusable_access_token_raises(self, oauth_gateway, card, body):
        with stub_comms(oauth_gateway, [body]) as comms:
            with pytest.raises(OAuthResponseError, match="Invalid access token response") as exc:
                oauth_gateway.purchase(100, card)

        assert exc.value.response is None
        assert len(comms.calls) == 1

    def test_requires_credentials(self, monkeypatch):
        for field in ("CHECKOUT_SECRET_KEY", "CHECKOUT_CLIENT_ID", "CHECKOUT_CLIENT_SECRET"):
            monkeypatch.setattr(settings, field, None)
        with pytest.raises(ValueError, match="client_secret"):
            CheckoutV2Gateway(client_id="abcd")

    def test_live_urls(self, card):
        gateway = CheckoutV2Gateway(client_id="abcd", client_secret="1234", test=False)
        with stub_comms(gateway, [ACCESS_TOKEN, SUCCESSFUL_PURCHASE]) as comms:
            gateway.purchase(100, card)
        assert comms.calls[0][1] == "https://access.checkout.com/connect/token"
        assert comms.calls[1][1] == "https://api.checkout.com/payments"

    def test_scrub(self, gateway):
        assert gateway.supports_scrubbing()
        assert gateway.scrub(PRE_SCRUBBED) == POST_SCRUBBED

    def test_scrub_network_token(self, gateway):
        scrubbed = gateway.scrub(NETWORK_TOKEN_PRE_SCRUBBED)
        assert r'\"token\":\"[FILTERED]\"' in scrubbed
        assert r'\"cryptogram\":\"[FILTERED]\"' in scrubbed
        assert r'\"eci\":\"05\"' in scrubbed
