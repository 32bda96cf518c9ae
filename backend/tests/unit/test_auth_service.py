import datetime
from unittest.mock import patch

import pytest
from jose import jwt
from sqlmodel import Session

import settings
from models.types import utcnow
from services import auth
from services.errors import Conflict, InvalidInput, Unauthenticated

GOOD_PASSWORD = "Secret@123"


@pytest.fixture
def student(test_session: Session):
    with patch("services.email.send_verification_email") as sent:
        user = auth.signup(
            test_session,
            name="Dana Student",
            email_address=" Dana@Uni.edu ",
            password=GOOD_PASSWORD,
        )
    sent.assert_called_once_with(user, user.verification_token)
    return user


def test_signup(student):
    assert student.email == "dana@uni.edu"
    assert student.verified is False
    assert student.verification_token
    assert student.password_hash != GOOD_PASSWORD
    assert auth.verify_password(GOOD_PASSWORD, student.password_hash)


def test_signup_duplicate_email(test_session: Session, student):
    with pytest.raises(Conflict):
        auth.signup(
            test_session, name="Other", email_address="DANA@uni.edu", password=GOOD_PASSWORD
        )


@pytest.mark.parametrize(
    "password",
    ["short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123", "Hash#Only123"],
)
def test_weak_passwords(test_session: Session, password):
    with pytest.raises(InvalidInput):
        auth.signup(
            test_session, name="Weak", email_address="weak@uni.edu", password=password
        )


@pytest.mark.parametrize("name", ["", " ", "x", "y" * 101])
def test_signup_name_length(test_session: Session, name):
    with pytest.raises(InvalidInput):
        auth.signup(
            test_session, name=name, email_address="n@uni.edu", password=GOOD_PASSWORD
        )


def test_signup_invalid_email(test_session: Session):
    with pytest.raises(InvalidInput):
        auth.signup(
            test_session, name="Nope", email_address="not-an-email", password=GOOD_PASSWORD
        )


def test_signup_domain_restriction(test_session: Session, monkeypatch):
    monkeypatch.setattr(settings, "ALLOWED_EMAIL_DOMAIN", "uni.edu")
    with pytest.raises(InvalidInput):
        auth.signup(
            test_session, name="Outsider", email_address="o@gmail.com", password=GOOD_PASSWORD
        )
    user = auth.signup(
        test_session, name="Insider", email_address="i@uni.edu", password=GOOD_PASSWORD
    )
    assert user.email == "i@uni.edu"


def test_login_and_token_roundtrip(test_session: Session, student):
    user, token = auth.login(
        test_session, email_address="DANA@uni.edu", password=GOOD_PASSWORD
    )
    assert user.id == student.id

    claims = auth.decode_access_token(token)
    assert claims["sub"] == student.id
    assert claims["email"] == "dana@uni.edu"
    assert claims["role"] == "student"
    assert claims["verified"] is False
    assert auth.user_from_token(test_session, token).id == student.id


@pytest.mark.parametrize(
    "address, password",
    [("dana@uni.edu", "Wrong@123"), ("nobody@uni.edu", GOOD_PASSWORD), ("dana@uni.edu", "")],
)
def test_login_failures(test_session: Session, student, address, password):
    with pytest.raises(Unauthenticated):
        auth.login(test_session, email_address=address, password=password)


def test_expired_token(student):
    token = auth.create_access_token(student, expires_delta=datetime.timedelta(seconds=-5))
    with pytest.raises(Unauthenticated):
        auth.decode_access_token(token)


def test_foreign_token(student):
    token = jwt.encode({"sub": student.id}, "another-secret", algorithm="HS256")
    with pytest.raises(Unauthenticated):
        auth.decode_access_token(token)
    with pytest.raises(Unauthenticated):
        auth.decode_access_token("garbage")


def test_token_for_deleted_user(test_session: Session, student):
    token = auth.create_access_token(student)
    test_session.delete(student)
    test_session.commit()
    with pytest.raises(Unauthenticated):
        auth.user_from_token(test_session, token)


def test_verify_email(test_session: Session, student):
    token = student.verification_token
    user = auth.verify_email(test_session, token=token)
    assert user.verified is True
    assert user.verification_token is None

    with pytest.raises(InvalidInput):
        auth.verify_email(test_session, token=token)
    with pytest.raises(InvalidInput):
        auth.verify_email(test_session, token="")


def test_password_reset(test_session: Session, student):
    with patch("services.email.send_password_reset_email") as sent:
        auth.request_password_reset(test_session, email_address="dana@uni.edu")
    test_session.refresh(student)
    token = student.reset_token
    assert token
    sent.assert_called_once_with(student, token)

    auth.reset_password(test_session, token=token, new_password="Brand@New1")
    assert student.reset_token is None
    auth.login(test_session, email_address="dana@uni.edu", password="Brand@New1")
    with pytest.raises(Unauthenticated):
        auth.login(test_session, email_address="dana@uni.edu", password=GOOD_PASSWORD)

    with pytest.raises(InvalidInput):
        auth.reset_password(test_session, token=token, new_password="Brand@New2")


def test_password_reset_unknown_address(test_session: Session):
    with patch("services.email.send_password_reset_email") as sent:
        auth.request_password_reset(test_session, email_address="nobody@uni.edu")
    sent.assert_not_called()


def test_expired_reset_token(test_session: Session, student):
    student.reset_token = "stale"
    student.reset_token_expires = utcnow() - datetime.timedelta(minutes=1)
    test_session.add(student)
    test_session.commit()

    with pytest.raises(InvalidInput):
        auth.reset_password(test_session, token="stale", new_password="Brand@New1")


def test_reset_requires_strong_password(test_session: Session, student):
    student.reset_token = "fresh"
    student.reset_token_expires = utcnow() + datetime.timedelta(minutes=5)
    test_session.add(student)
    test_session.commit()

    with pytest.raises(InvalidInput):
        auth.reset_password(test_session, token="fresh", new_password="weak")


def test_update_profile(test_session: Session, student):
    updated = auth.update_profile(test_session, user=student, name="  Dana S.  ")
    assert updated.name == "Dana S."
    with pytest.raises(InvalidInput):
        auth.update_profile(test_session, user=student, name="D")


def test_long_passwords_are_cut_at_72_bytes():
    # two bytes per character, so 36 of them fill bcrypt's whole input
    prefix = "é" * 36
    password_hash = auth.hash_password(prefix + "A@1a")
    assert auth.verify_password(prefix + "something else", password_hash)
    assert not auth.verify_password("é" * 35, password_hash)
