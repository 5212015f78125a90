from hypothesis import given, strategies as st

from carebridge.services.identity_registry import IdentityRegistry
from carebridge.services.phone import digits_only, normalize_phone


def test_local_and_international_forms_converge():
    forms = ["+254712345678", "0712345678", "254 712 345 678", "254712345678", "+254 (0)712-345-678", "00254 712 345 678"]
    assert {normalize_phone(p) for p in forms} == {"+254712345678"}


def test_subscriber_number_without_prefix():
    assert normalize_phone("712345678") == "+254712345678"
    assert normalize_phone("112345678") == "+254112345678"


def test_foreign_number_keeps_its_country_code():
    assert normalize_phone("+447700900123") == "+447700900123"


def test_empty_input():
    assert normalize_phone("") == ""
    assert normalize_phone(None) == ""
    assert normalize_phone(" - ") == ""


def test_explicit_country_code():
    assert normalize_phone("0712345678", country_code="255") == "+255712345678"


@given(subscriber=st.from_regex(r"7[0-9]{8}", fullmatch=True))
def test_normalization_is_idempotent(subscriber):
    for raw in (f"0{subscriber}", f"254{subscriber}", f"+254{subscriber}"):
        once = normalize_phone(raw)
        assert once == f"+254{subscriber}"
        assert normalize_phone(once) == once


def test_digits_only():
    assert digits_only("+254 712-345-678") == "254712345678"


def test_lookup_matches_any_written_form(db_session, facilities, make_patient):
    clinic_a, _ = facilities
    patient = make_patient(clinic_a, phone="0712 345 678")
    assert patient.phone == "+254712345678"

    registry = IdentityRegistry(db_session)
    for form in ("+254712345678", "0712345678", "254 712 345 678", "00254 712 345 678"):
        lookup = registry.find_patient_by_phone(form)
        assert lookup.exists
        assert lookup.patient_id == patient.id
        assert lookup.facility_id == clinic_a.id
        assert lookup.facility_name == clinic_a.name


def test_lookup_of_unknown_number_is_not_an_error(db_session, facilities):
    lookup = IdentityRegistry(db_session).find_patient_by_phone("0799000111")
    assert lookup.exists is False
    assert lookup.patient_id is None


def test_international_dialing_prefix():
    assert normalize_phone("00254712345678") == "+254712345678"
    assert normalize_phone("002540712345678") == "+254712345678"
    assert normalize_phone("00447700900123") == "+447700900123"
