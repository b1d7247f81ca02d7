"""Tests for settings, logging context and the error taxonomy."""

import pytest
import structlog
from pydantic import ValidationError as PydanticValidationError

from algopay.core.config import Settings
from algopay.core.logging import operation_context
from algopay.db.init import sanitize_db_url
from algopay.transactions.config import LifecycleConfig
from algopay.transactions.errors import (
    DuplicateTransactionError,
    ErrorCategory,
    InvalidAmount,
    InvalidCredential,
    MissingCredential,
    NetworkError,
    NetworkUnavailable,
    PersistenceInconsistency,
    RejectedByNetwork,
    StoreError,
    TransactionError,
    TransactionNotFound,
    ValidationError,
)


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings(DATABASE_URL=None)

        assert settings.get_database_url() == "sqlite+aiosqlite:///./algopay.db"
        assert settings.get_algod_url() == "https://testnet-api.algonode.cloud"
        assert settings.MAX_CONFIRMATION_ROUNDS == 10
        assert settings.CONFIRM_ON_SUBMIT is False

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ALGOD_SERVER", "http://localhost")
        monkeypatch.setenv("ALGOD_PORT", "4001")
        monkeypatch.setenv("MAX_CONFIRMATION_ROUNDS", "4")
        monkeypatch.setenv("CONFIRM_ON_SUBMIT", "true")

        settings = Settings()

        assert settings.get_algod_url() == "http://localhost:4001"
        assert settings.MAX_CONFIRMATION_ROUNDS == 4
        assert settings.CONFIRM_ON_SUBMIT is True

    def test_lifecycle_config_from_settings(self):
        settings = Settings(
            CONFIRM_ON_SUBMIT=True,
            MAX_CONFIRMATION_ROUNDS=3,
            ALGOD_TIMEOUT=7.5,
            ALGORAND_MNEMONIC="word " * 25,
            RECONCILE_INTERVAL_SECONDS=15,
        )

        config = LifecycleConfig.from_settings(settings)

        assert config.confirm_on_submit is True
        assert config.max_confirmation_rounds == 3
        assert config.ledger_timeout == 7.5
        assert config.scheduler.interval_seconds == 15
        assert "word" not in repr(config)

    def test_negative_rounds_rejected(self):
        with pytest.raises(PydanticValidationError):
            LifecycleConfig(max_confirmation_rounds=-1)

    def test_sanitize_db_url(self):
        url = "postgresql+asyncpg://user:pass@db:5432/algopay"
        assert sanitize_db_url(url) == "postgresql+asyncpg://***:***@db:5432/algopay"


class TestOperationContext:
    """Tests for structlog context binding."""

    def test_binds_and_restores(self):
        structlog.contextvars.clear_contextvars()

        with operation_context("reconcile_pending", run_id="r1") as outer_id:
            outer = structlog.contextvars.get_contextvars()
            with operation_context("check_status", tx_id="TX"):
                inner = structlog.contextvars.get_contextvars()
            after_inner = structlog.contextvars.get_contextvars()

        assert outer["operation"] == "reconcile_pending"
        assert outer["operation_id"] == outer_id
        assert inner["operation"] == "check_status"
        assert inner["tx_id"] == "TX"
        assert inner["run_id"] == "r1"
        assert after_inner == outer
        assert structlog.contextvars.get_contextvars() == {}


class TestErrorTaxonomy:
    """Tests for error categories and codes."""

    @pytest.mark.parametrize(
        "error,category,code",
        [
            (InvalidAmount("bad"), ErrorCategory.VALIDATION, "INVALID_AMOUNT"),
            (MissingCredential("none"), ErrorCategory.VALIDATION, "MISSING_CREDENTIAL"),
            (InvalidCredential("bad"), ErrorCategory.CREDENTIAL, "INVALID_CREDENTIAL"),
            (NetworkError("down"), ErrorCategory.NETWORK, "NETWORK_ERROR"),
            (NetworkUnavailable("down"), ErrorCategory.NETWORK, "NETWORK_UNAVAILABLE"),
            (RejectedByNetwork("overspend"), ErrorCategory.REJECTION, "REJECTED_BY_NETWORK"),
            (StoreError("locked"), ErrorCategory.PERSISTENCE, "STORE_ERROR"),
            (DuplicateTransactionError("TX"), ErrorCategory.PERSISTENCE, "DUPLICATE_TRANSACTION"),
            (PersistenceInconsistency("TX"), ErrorCategory.PERSISTENCE, "PERSISTENCE_INCONSISTENCY"),
            (TransactionNotFound("TX"), ErrorCategory.NOT_FOUND, "TRANSACTION_NOT_FOUND"),
        ],
    )
    def test_categories(self, error, category, code):
        assert isinstance(error, TransactionError)
        assert error.category is category
        assert error.code == code
        assert error.to_dict()["category"] == category.value

    def test_code_override(self):
        error = ValidationError("Transaction ID is required", code="MISSING_TX_ID")
        assert error.code == "MISSING_TX_ID"
        assert ValidationError("other").code == "VALIDATION_ERROR"

    def test_details_in_to_dict(self):
        assert RejectedByNetwork("overspend").to_dict()["reason"] == "overspend"
        assert TransactionNotFound("TX").to_dict()["tx_id"] == "TX"
        assert PersistenceInconsistency("TX", StoreError("x")).to_dict()["tx_id"] == "TX"

    def test_network_unavailable_is_a_network_error(self):
        assert isinstance(NetworkUnavailable("x", status_code=503), NetworkError)
