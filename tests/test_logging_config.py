"""
Tests for logging configuration.
"""
import logging

from storefront.logging_config import setup_logging


class TestLoggingConfiguration:
    """Test logging setup and configuration."""

    def test_setup_logging_default_level(self, monkeypatch):
        """Test that setup_logging defaults to INFO level."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging()

        logger = logging.getLogger("storefront")
        assert logger.level == logging.INFO

    def test_setup_logging_respects_env_var(self, monkeypatch):
        """Test that LOG_LEVEL env var is respected."""
        monkeypatch.setenv("LOG_LEVEL", "warning")
        setup_logging()

        assert logging.getLogger("storefront").level == logging.WARNING

    def test_setup_logging_explicit_level(self):
        """Test that explicit level parameter works."""
        setup_logging(level="ERROR")

        assert logging.getLogger("storefront").level == logging.ERROR

    def test_setup_logging_invalid_level_defaults_to_info(self):
        """Test that invalid level falls back to INFO."""
        setup_logging(level="INVALID_LEVEL")

        assert logging.getLogger("storefront").level == logging.INFO

    def test_status_fallback_warnings_kept_at_quiet_levels(self):
        setup_logging(level="ERROR")

        assert logging.getLogger("storefront").level == logging.ERROR
        assert logging.getLogger("storefront.order_status").level == logging.WARNING
        assert logging.getLogger("storefront.order_status").isEnabledFor(logging.WARNING)

    def test_status_logger_follows_verbose_levels(self):
        setup_logging(level="DEBUG")

        assert logging.getLogger("storefront.order_status").level == logging.DEBUG

    def test_third_party_noise_reduced(self):
        setup_logging(level="INFO")

        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


class TestNoSensitiveDataInLogs:
    """Order logs at INFO or higher carry ids and amounts, not customer details."""

    def test_order_creation_logs_no_customer_data(self, caplog, db_session, fee_config):
        from storefront.cart import Cart
        from storefront.orders import CustomerContact, build_order_payload
        from storefront.services.order import create_order

        cart = Cart()
        cart.add_item("bagel", "Plain Bagel", 250, quantity=2)
        cart.set_fulfillment_type("pickup")
        contact = CustomerContact(first_name="Jane", last_name="Doe", phone="+12015550123", email="jane@gmail.com")
        payload = build_order_payload(cart, contact, cart.totals(fee_config), payment_method="pos")

        with caplog.at_level(logging.INFO, logger="storefront"):
            create_order(db_session, payload, tenant_slug="default")

        messages = [r.getMessage() for r in caplog.records if r.levelno >= logging.INFO]
        assert messages
        for message in messages:
            assert "Jane" not in message
            assert "+12015550123" not in message
            assert "jane@gmail.com" not in message
