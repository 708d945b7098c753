import pytest

from salon_scheduler.shared.validators import validate_email, validate_us_phone


@pytest.mark.parametrize(
    "typed",
    ["(408) 555-1234", "408.555.1234", "1-408-555-1234", "+1 408 555 1234", "+14085551234"],
)
def test_phone_formats_normalise_to_the_same_key(typed):
    assert validate_us_phone(typed) == "+14085551234"


@pytest.mark.parametrize("typed", ["12345", "408555123", "123-555-1234", "408-055-1234"])
def test_invalid_phones_are_rejected(typed):
    with pytest.raises(ValueError):
        validate_us_phone(typed)


def test_empty_phone_passes_through():
    assert validate_us_phone(None) is None
    assert validate_us_phone("") == ""


def test_email_is_lowercased_and_checked():
    assert validate_email("  Gia.Ruiz@Example.COM ") == "gia.ruiz@example.com"
    with pytest.raises(ValueError):
        validate_email("gia@localhost")
