import pytest

from atelier.config import Config
from atelier.payments import SandboxGateway
from atelier.services import build_in_memory, from_config


def settings(key_id: str, key_secret: str) -> Config:
    cfg = Config()
    cfg.DATABASE_URL = "sqlite+aiosqlite:///:memory:"
    cfg.RAZORPAY_KEY_ID = key_id
    cfg.RAZORPAY_KEY_SECRET = key_secret
    return cfg


@pytest.mark.parametrize(
    ("key_id", "key_secret", "missing"),
    [
        ("rzp_live_key", "", "RAZORPAY_KEY_SECRET"),
        ("", "rzp_live_secret", "RAZORPAY_KEY_ID"),
        ("  ", "  ", "RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET"),
    ],
)
async def test_from_config_refuses_missing_gateway_keys(
    key_id: str, key_secret: str, missing: str
) -> None:
    with pytest.raises(ValueError, match="Payment gateway not configured") as caught:
        await from_config(settings(key_id, key_secret))

    assert missing in str(caught.value)


async def test_from_config_builds_with_keys() -> None:
    commerce, engine = await from_config(settings("rzp_test_key", "rzp_test_secret"))
    try:
        assert commerce.payments.currency == "INR"
    finally:
        await engine.dispose()


def test_empty_secret_is_refused_for_any_gateway() -> None:
    with pytest.raises(ValueError, match="not configured"):
        build_in_memory(SandboxGateway(), key_secret="")
