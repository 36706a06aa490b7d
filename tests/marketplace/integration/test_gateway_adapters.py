"""Tests for the payment gateway registry and the Paystack adapter."""

from unittest.mock import MagicMock

import pytest
import requests

from marketplace.errors import ExternalGatewayError
from marketplace.gateway import get_currency, get_gateway, reset_gateway, set_gateway
from marketplace.gateway.fake_adapter import FakeGateway
from marketplace.gateway.paystack_adapter import PaystackGateway
from marketplace.gateway.port import REFUND_FAILED, REFUND_PENDING, REFUND_PROCESSED


def _response(status_code=200, body=None):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


def _paystack(session):
    return PaystackGateway(secret_key="sk_test_123", base_url="https://paystack.test/", session=session)


def _refund(gateway):
    return gateway.refund_transaction(
        reference="pay_ord-1",
        amount_minor_units=8000,
        currency="GHS",
        notes="Refund for dispute dsp-1",
        idempotency_key="dispute_refund_dsp-1",
    )


class TestGatewayRegistry:
    def test_fake_gateway_by_default(self):
        assert isinstance(get_gateway(), FakeGateway)

    def test_paystack_when_secret_configured(self, monkeypatch):
        monkeypatch.setenv("PAYSTACK_SECRET_KEY", "sk_live_abc")
        reset_gateway()
        gateway = get_gateway()
        assert isinstance(gateway, PaystackGateway)
        assert gateway.secret_key == "sk_live_abc"

    def test_override(self):
        custom = FakeGateway()
        set_gateway(custom)
        assert get_gateway() is custom

    def test_currency_default(self):
        assert get_currency() == "GHS"


class TestPaystackRefund:
    def test_processed_refund(self):
        session = MagicMock()
        session.post.return_value = _response(body={"status": True, "data": {"id": 991, "status": "processed"}})

        result = _refund(_paystack(session))

        assert result.success is True
        assert result.status == REFUND_PROCESSED
        assert result.refund_reference == "991"

        args, kwargs = session.post.call_args
        assert args[0] == "https://paystack.test/refund"
        assert kwargs["json"] == {
            "transaction": "pay_ord-1",
            "amount": 8000,
            "currency": "GHS",
            "customer_note": "Refund for dispute dsp-1",
            "merchant_note": "dispute_refund_dsp-1",
        }
        assert kwargs["headers"]["Authorization"] == "Bearer sk_test_123"

    @pytest.mark.parametrize("gateway_status", ["pending", "processing", "queued"])
    def test_pending_refund(self, gateway_status):
        session = MagicMock()
        session.post.return_value = _response(body={"status": True, "data": {"id": 7, "status": gateway_status}})

        result = _refund(_paystack(session))

        assert result.success is True
        assert result.status == REFUND_PENDING

    def test_failed_refund_status(self):
        session = MagicMock()
        session.post.return_value = _response(
            body={"status": True, "message": "Refund failed", "data": {"id": 7, "status": "failed"}}
        )

        result = _refund(_paystack(session))

        assert result.success is False
        assert result.status == REFUND_FAILED
        assert result.failure_reason == "Refund failed"

    def test_http_error_is_a_failure(self):
        session = MagicMock()
        session.post.return_value = _response(400, {"status": False, "message": "Transaction has been fully reversed"})

        result = _refund(_paystack(session))

        assert result.success is False
        assert result.failure_reason == "Transaction has been fully reversed"

    def test_transport_error_is_a_failure_without_retry(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("connection refused")

        result = _refund(_paystack(session))

        assert result.success is False
        assert "connection refused" in result.failure_reason
        assert session.post.call_count == 1

    def test_unknown_status_raises(self):
        session = MagicMock()
        session.post.return_value = _response(body={"status": True, "data": {"id": 7, "status": "mystery"}})

        with pytest.raises(ExternalGatewayError):
            _refund(_paystack(session))

    def test_non_json_body_raises(self):
        session = MagicMock()
        session.post.return_value = _response(502, ValueError("not json"))

        with pytest.raises(ExternalGatewayError):
            _refund(_paystack(session))


class TestPaystackVerification:
    def test_successful_payment(self):
        session = MagicMock()
        session.get.return_value = _response(
            body={"status": True, "data": {"status": "success", "amount": 20000, "currency": "GHS"}}
        )

        result = _paystack(session).verify_payment("pay_ord-1")

        assert result.success is True
        assert result.amount_minor_units == 20000
        assert session.get.call_args[0][0] == "https://paystack.test/transaction/verify/pay_ord-1"

    def test_abandoned_payment(self):
        session = MagicMock()
        session.get.return_value = _response(
            body={"status": True, "data": {"status": "abandoned", "gateway_response": "Customer left"}}
        )

        result = _paystack(session).verify_payment("pay_ord-1")

        assert result.success is False
        assert result.failure_reason == "Customer left"

    def test_transfer_verification_path(self):
        session = MagicMock()
        session.get.return_value = _response(body={"status": True, "data": {"status": "success"}})

        assert _paystack(session).verify_transfer("trf_1").success is True
        assert session.get.call_args[0][0] == "https://paystack.test/transfer/verify/trf_1"

    def test_lookup_retries_transient_errors(self):
        session = MagicMock()
        session.get.side_effect = [
            requests.Timeout("slow"),
            _response(503, {"status": False}),
            _response(body={"status": True, "data": {"status": "success"}}),
        ]

        result = _paystack(session).verify_payment("pay_ord-1")

        assert result.success is True
        assert session.get.call_count == 3

    def test_lookup_gives_up_after_retries(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("down")
        gateway = PaystackGateway(secret_key="sk", session=session, verify_retries=1)

        with pytest.raises(ExternalGatewayError):
            gateway.verify_payment("pay_ord-1")
        assert session.get.call_count == 2
