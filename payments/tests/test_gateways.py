import base64
import hashlib
import hmac
import json
from unittest import mock

import requests
from django.test import SimpleTestCase, override_settings

from payments.apps import payments_system_checks
from payments.exceptions import GatewayRejected, GatewayUnavailable, MalformedPayload
from payments.gateways import (
    EVENT_CHARGE_FAILED,
    EVENT_CHARGE_SUCCESS,
    STATUS_PENDING,
    STATUS_SUCCESS,
    FlutterwaveGateway,
    MockGateway,
    PaystackGateway,
    get_gateway,
)
from payments.gateways.base import mask_payload


def _response(status_code=200, body=None):
    resp = mock.Mock(spec=requests.Response)
    resp.status_code = status_code
    resp.json.return_value = body if body is not None else {}
    resp.text = json.dumps(body or {})
    return resp


def _session(*responses):
    session = mock.Mock(spec=requests.Session)
    session.request.side_effect = list(responses)
    return session


class PaystackTests(SimpleTestCase):
    def gateway(self, *responses, **kwargs):
        return PaystackGateway(secret_key="sk_test_123", base_url="https://paystack.test",
                               session=_session(*responses), **kwargs)

    def test_signature(self):
        gw = self.gateway()
        body = b'{"event":"charge.success","data":{"reference":"EKSU_1"}}'
        good = hmac.new(b"sk_test_123", body, hashlib.sha512).hexdigest()
        self.assertTrue(gw.verify_signature(body, good))
        self.assertFalse(gw.verify_signature(body, "0" * 128))
        self.assertFalse(gw.verify_signature(body, None))
        # same JSON, different bytes
        self.assertFalse(gw.verify_signature(b'{"event": "charge.success", "data": {"reference": "EKSU_1"}}', good))

    def test_initialize(self):
        gw = self.gateway(_response(200, {
            "status": True,
            "data": {"authorization_url": "https://checkout.paystack.com/abc", "access_code": "abc",
                     "reference": "EKSU_1"},
        }))
        result = gw.initialize("EKSU_1", 10000, "NGN", "voter@eksu.edu.ng", callback_url="https://x.test/cb")
        self.assertEqual(result.checkout_url, "https://checkout.paystack.com/abc")
        self.assertEqual(result.external_reference, "EKSU_1")

        kwargs = gw.session.request.call_args.kwargs
        self.assertEqual(kwargs["url"], "https://paystack.test/transaction/initialize")
        self.assertEqual(kwargs["json"]["amount"], 10000)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk_test_123")
        self.assertEqual(kwargs["timeout"], (5, 25))

    def test_verify_maps_status(self):
        gw = self.gateway(
            _response(200, {"status": True, "data": {"status": "success", "amount": 10000, "currency": "NGN",
                                                      "fees": 150, "channel": "card",
                                                      "paid_at": "2025-01-10T10:00:00.000Z"}}),
            _response(200, {"status": True, "data": {"status": "abandoned"}}),
        )
        ok = gw.verify("EKSU_1")
        self.assertEqual(ok.status, STATUS_SUCCESS)
        self.assertEqual(ok.amount_minor, 10000)
        self.assertEqual(ok.fee_minor, 150)
        self.assertIsNotNone(ok.paid_at)
        self.assertEqual(gw.verify("EKSU_1").status, STATUS_PENDING)

    def test_http_errors(self):
        gw = self.gateway(_response(502, {"message": "bad gateway"}))
        with self.assertRaises(GatewayUnavailable):
            gw.verify("EKSU_1")

        gw = self.gateway(_response(400, {"status": False, "message": "Invalid key"}))
        with self.assertRaises(GatewayRejected) as ctx:
            gw.verify("EKSU_1")
        self.assertEqual(ctx.exception.message, "Invalid key")

        gw = self.gateway(_response(200, {"status": False, "message": "Duplicate reference"}))
        with self.assertRaises(GatewayRejected):
            gw.initialize("EKSU_1", 10000, "NGN", "voter@eksu.edu.ng")

    @mock.patch("payments.gateways.base.time.sleep")
    def test_network_errors_retry_once(self, _sleep):
        gw = self.gateway(requests.exceptions.ConnectTimeout(), requests.exceptions.ReadTimeout())
        with self.assertRaises(GatewayUnavailable):
            gw.verify("EKSU_1")
        self.assertEqual(gw.session.request.call_count, 2)

    @mock.patch("payments.gateways.base.time.sleep")
    def test_read_timeout_on_refund_is_not_retried(self, sleep):
        gw = self.gateway(requests.exceptions.ReadTimeout(), _response(200, {"status": True, "data": {}}))
        with self.assertRaises(GatewayUnavailable):
            gw.refund("EKSU_1", 10000, "NGN", "Customer dispute raised")
        self.assertEqual(gw.session.request.call_count, 1)
        sleep.assert_not_called()

    @mock.patch("payments.gateways.base.time.sleep")
    def test_connection_refused_is_retried(self, _sleep):
        gw = self.gateway(requests.exceptions.ConnectionError(),
                          _response(200, {"status": True, "data": {"status": "success"}}))
        self.assertEqual(gw.verify("EKSU_1").status, STATUS_SUCCESS)
        self.assertEqual(gw.session.request.call_count, 2)

    def test_http_responses_are_not_retried(self):
        gw = self.gateway(_response(503, {}), _response(200, {"status": True, "data": {}}))
        with self.assertRaises(GatewayUnavailable):
            gw.verify("EKSU_1")
        self.assertEqual(gw.session.request.call_count, 1)

    def test_log_fn_receives_masked_payloads(self):
        records = []
        gw = self.gateway(_response(200, {"status": True, "data": {"authorization_url": "https://c.test/x"}}),
                          log_fn=records.append)
        gw.initialize("EKSU_1", 10000, "NGN", "voter@eksu.edu.ng")
        self.assertEqual(records[0]["request"]["email"], "vo***@eksu.edu.ng")
        self.assertEqual(records[0]["status_code"], 200)

    def test_parse_event(self):
        gw = self.gateway()
        event = gw.parse_event(json.dumps({
            "event": "charge.success",
            "data": {"reference": "EKSU_1", "status": "success", "amount": 10000, "currency": "NGN"},
        }).encode())
        self.assertEqual(event.kind, EVENT_CHARGE_SUCCESS)
        self.assertEqual(event.reference, "EKSU_1")
        self.assertEqual(event.amount_minor, 10000)

        failed = gw.parse_event(b'{"event":"charge.success","data":{"reference":"EKSU_1","status":"failed"}}')
        self.assertEqual(failed.kind, EVENT_CHARGE_FAILED)

        with self.assertRaises(MalformedPayload):
            gw.parse_event(b"not json")
        with self.assertRaises(MalformedPayload):
            gw.parse_event(b"[1, 2]")


class FlutterwaveTests(SimpleTestCase):
    def gateway(self, *responses):
        return FlutterwaveGateway(secret_key="FLWSECK_TEST", webhook_secret="flw-secret",
                                  base_url="https://flw.test", session=_session(*responses))

    def test_signature_is_base64_sha256(self):
        gw = self.gateway()
        body = b'{"event":"charge.completed"}'
        good = base64.b64encode(hmac.new(b"flw-secret", body, hashlib.sha256).digest()).decode()
        self.assertTrue(gw.verify_signature(body, good))
        self.assertFalse(gw.verify_signature(body, hmac.new(b"flw-secret", body, hashlib.sha512).hexdigest()))

    def test_initialize_sends_major_units(self):
        gw = self.gateway(_response(200, {"status": "success", "data": {"link": "https://flw.test/pay/1"}}))
        result = gw.initialize("EKSU_1", 10050, "NGN", "voter@eksu.edu.ng")
        self.assertEqual(result.checkout_url, "https://flw.test/pay/1")
        self.assertEqual(gw.session.request.call_args.kwargs["json"]["amount"], "100.50")

    def test_verify_converts_to_minor_units(self):
        gw = self.gateway(_response(200, {"status": "success", "data": {
            "status": "successful", "amount": 100, "currency": "NGN", "app_fee": 1.4, "payment_type": "card",
        }}))
        result = gw.verify("EKSU_1")
        self.assertEqual(result.status, STATUS_SUCCESS)
        self.assertEqual(result.amount_minor, 10000)
        self.assertEqual(result.fee_minor, 140)
        self.assertEqual(gw.session.request.call_args.kwargs["params"], {"tx_ref": "EKSU_1"})

    def test_charge_completed_is_normalized(self):
        gw = self.gateway()
        ok = gw.parse_event(b'{"event":"charge.completed","data":{"tx_ref":"EKSU_1","status":"successful"}}')
        bad = gw.parse_event(b'{"event":"charge.completed","data":{"tx_ref":"EKSU_1","status":"failed"}}')
        self.assertEqual((ok.kind, ok.reference), (EVENT_CHARGE_SUCCESS, "EKSU_1"))
        self.assertEqual(bad.kind, EVENT_CHARGE_FAILED)


class MockGatewayTests(SimpleTestCase):
    def test_outcomes(self):
        gw = MockGateway(outcome="success", secret="s")
        init = gw.initialize("EKSU_1", 10000, "NGN", "a@b.c")
        self.assertTrue(init.checkout_url.endswith("/mock-checkout/EKSU_1"))
        self.assertEqual(gw.verify("EKSU_1").amount_minor, 10000)

        with self.assertRaises(GatewayUnavailable):
            MockGateway(outcome="unavailable", secret="s").verify("EKSU_1")
        with self.assertRaises(ValueError):
            MockGateway(outcome="maybe")

    def test_signed_round_trip(self):
        gw = MockGateway(secret="s")
        body = gw.build_event("EKSU_1", amount_minor=10000)
        self.assertTrue(gw.verify_signature(body, gw.sign(body)))
        self.assertEqual(gw.parse_event(body).kind, EVENT_CHARGE_SUCCESS)


class RegistryTests(SimpleTestCase):
    @override_settings(PAYMENT_GATEWAY="flutterwave")
    def test_configured_default(self):
        self.assertIsInstance(get_gateway(), FlutterwaveGateway)
        self.assertIsInstance(get_gateway("mock"), MockGateway)

    def test_unknown(self):
        with self.assertRaises(ValueError):
            get_gateway("stripe")

    def test_mask_payload(self):
        masked = mask_payload({"email": "voter@eksu.edu.ng", "nested": [{"authorization_code": "AUTH_abcdef123"}]})
        self.assertEqual(masked["email"], "vo***@eksu.edu.ng")
        self.assertEqual(masked["nested"][0]["authorization_code"], "AUT***123")


class SystemCheckTests(SimpleTestCase):
    def ids(self):
        return [m.id for m in payments_system_checks(None)]

    @override_settings(DEBUG=True, PAYMENT_GATEWAY="mock")
    def test_clean_configuration(self):
        self.assertEqual(self.ids(), [])

    @override_settings(PAYMENT_GATEWAY="stripe")
    def test_unknown_gateway(self):
        self.assertEqual(self.ids(), ["payments.E001"])

    @override_settings(DEBUG=True, PAYMENT_GATEWAY="flutterwave", FLUTTERWAVE_WEBHOOK_SECRET="")
    def test_missing_keys(self):
        self.assertEqual(self.ids(), ["payments.W001"])

    @override_settings(DEBUG=False, PAYMENT_GATEWAY="mock", PAYMENT_TTL_MINUTES=0)
    def test_mock_in_production_and_bad_ttl(self):
        self.assertEqual(self.ids(), ["payments.W002", "payments.E002"])
