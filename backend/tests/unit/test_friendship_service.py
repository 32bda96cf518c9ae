import threading

import pytest
from sqlmodel import Session, select

from models.auth import User
from models.friendship import FriendRequest, FriendRequestStatus, Friendship
from services.errors import Conflict, Forbidden, InvalidInput, NotFound
from services.friendship import (
    accept_request,
    is_friend,
    list_friends,
    list_requests,
    reject_request,
    remove_friend,
    send_request,
)


def test_send_request_creates_pending(test_session: Session, alice, bob):
    fr, receiver = send_request(test_session, sender=alice, recipient_email="b@x.com")
    assert fr.status == FriendRequestStatus.pending
    assert fr.sender_id == alice.id
    assert fr.receiver_id == bob.id
    assert receiver.id == bob.id


def test_email_lookup_ignores_case_and_spaces(test_session: Session, alice, bob):
    fr, _ = send_request(test_session, sender=alice, recipient_email="  B@X.com ")
    assert fr.receiver_id == bob.id


def test_send_request_unknown_email(test_session: Session, alice):
    with pytest.raises(NotFound):
        send_request(test_session, sender=alice, recipient_email="nobody@x.com")


def test_send_request_requires_email(test_session: Session, alice):
    with pytest.raises(InvalidInput):
        send_request(test_session, sender=alice, recipient_email="  ")


def test_cannot_befriend_yourself(test_session: Session, alice):
    with pytest.raises(InvalidInput):
        send_request(test_session, sender=alice, recipient_email=alice.email)


def test_at_most_one_pending_request(test_session: Session, alice, bob):
    send_request(test_session, sender=alice, recipient_email=bob.email)

    with pytest.raises(Conflict):
        send_request(test_session, sender=alice, recipient_email=bob.email)
    with pytest.raises(Conflict):
        send_request(test_session, sender=bob, recipient_email=alice.email)


def test_request_again_after_rejection(test_session: Session, alice, bob):
    fr, _ = send_request(test_session, sender=alice, recipient_email=bob.email)
    reject_request(test_session, request_id=fr.id, user=bob)

    again, _ = send_request(test_session, sender=bob, recipient_email=alice.email)
    assert again.status == FriendRequestStatus.pending


def test_already_friends_conflict(test_session: Session, alice, bob, befriend):
    befriend(alice, bob)
    with pytest.raises(Conflict):
        send_request(test_session, sender=bob, recipient_email=alice.email)


def test_list_requests(test_session: Session, alice, bob, carol):
    send_request(test_session, sender=alice, recipient_email=bob.email)
    send_request(test_session, sender=carol, recipient_email=alice.email)

    requests = list_requests(test_session, user=alice)
    assert [r["receiver_id"] for r in requests["sent"]] == [bob.id]
    assert requests["sent"][0]["receiver_name"] == "Bob"
    assert [r["sender_id"] for r in requests["received"]] == [carol.id]
    assert requests["received"][0]["sender_email"] == carol.email


def test_resolved_requests_are_not_listed(test_session: Session, alice, bob):
    fr, _ = send_request(test_session, sender=alice, recipient_email=bob.email)
    reject_request(test_session, request_id=fr.id, user=bob)

    assert list_requests(test_session, user=alice) == {"received": [], "sent": []}
    assert list_requests(test_session, user=bob) == {"received": [], "sent": []}


def test_only_receiver_can_accept(test_session: Session, alice, bob):
    fr, _ = send_request(test_session, sender=alice, recipient_email=bob.email)

    with pytest.raises(Forbidden):
        accept_request(test_session, request_id=fr.id, user=alice)

    friendship = accept_request(test_session, request_id=fr.id, user=bob)
    assert friendship.user1_id == alice.id
    test_session.refresh(fr)
    assert fr.status == FriendRequestStatus.accepted


def test_accept_unknown_request(test_session: Session, bob):
    with pytest.raises(NotFound):
        accept_request(test_session, request_id=999, user=bob)


def test_resolved_requests_are_terminal(test_session: Session, alice, bob):
    fr, _ = send_request(test_session, sender=alice, recipient_email=bob.email)
    accept_request(test_session, request_id=fr.id, user=bob)

    with pytest.raises(Conflict):
        accept_request(test_session, request_id=fr.id, user=bob)
    with pytest.raises(Conflict):
        reject_request(test_session, request_id=fr.id, user=bob)


def test_reject_does_not_create_friendship(test_session: Session, alice, bob):
    fr, _ = send_request(test_session, sender=alice, recipient_email=bob.email)

    with pytest.raises(Forbidden):
        reject_request(test_session, request_id=fr.id, user=alice)

    rejected = reject_request(test_session, request_id=fr.id, user=bob)
    assert rejected.status == FriendRequestStatus.rejected
    assert not is_friend(test_session, alice.id, bob.id)


def test_friendship_stored_in_canonical_order(
    test_session: Session, user_factory, befriend
):
    # "zed" > "amy" even though zed sends the request
    zed = user_factory("zed", "Zed", "zed@x.com")
    amy = user_factory("amy", "Amy", "amy@x.com")
    befriend(zed, amy)

    row = test_session.exec(select(Friendship)).one()
    assert (row.user1_id, row.user2_id) == ("amy", "zed")
    assert is_friend(test_session, "amy", "zed")
    assert is_friend(test_session, "zed", "amy")


def test_list_friends_newest_first(test_session: Session, alice, bob, carol, befriend):
    befriend(alice, bob)
    befriend(carol, alice)

    friends = list_friends(test_session, user=alice)
    assert [f["friend_id"] for f in friends] == [carol.id, bob.id]
    assert friends[0]["friend_name"] == "Carol"
    assert friends[0]["friends_since"] is not None

    assert [f["friend_id"] for f in list_friends(test_session, user=bob)] == [alice.id]


def test_remove_friend(test_session: Session, alice, bob, befriend):
    befriend(alice, bob)

    remove_friend(test_session, user=bob, friend_id=alice.id)
    assert not is_friend(test_session, alice.id, bob.id)

    with pytest.raises(NotFound):
        remove_friend(test_session, user=alice, friend_id=bob.id)


def test_remove_friend_requires_id(test_session: Session, alice):
    with pytest.raises(InvalidInput):
        remove_friend(test_session, user=alice, friend_id="")


def test_stale_accept_is_rejected(test_engine, test_session: Session, alice, bob):
    """A caller that read the request as pending before it was accepted still loses."""
    fr, _ = send_request(test_session, sender=alice, recipient_email=bob.email)

    with Session(test_engine) as late:
        stale = late.get(FriendRequest, fr.id)
        assert stale.status == FriendRequestStatus.pending

        accept_request(test_session, request_id=fr.id, user=bob)

        # the status guard travels with the UPDATE, not with the earlier read
        from services.friendship import _resolve

        with pytest.raises(Conflict):
            _resolve(late, fr.id, FriendRequestStatus.accepted)
        late.rollback()

    assert len(test_session.exec(select(Friendship)).all()) == 1


def test_concurrent_accepts_create_one_friendship(tmp_path):
    from models.common import Database

    db = Database(f"sqlite:///{tmp_path / 'race.sqlite'}").open()
    db.create_all()
    with db.session() as session:
        session.add(User(id="u1", name="Alice", email="a@x.com"))
        session.add(User(id="u2", name="Bob", email="b@x.com"))
        session.commit()
        fr, _ = send_request(session, sender=session.get(User, "u1"), recipient_email="b@x.com")
        request_id = fr.id

    barrier = threading.Barrier(2)
    outcomes = []

    def accept():
        with db.session() as session:
            receiver = session.get(User, "u2")
            barrier.wait()
            try:
                accept_request(session, request_id=request_id, user=receiver)
                outcomes.append("accepted")
            except Conflict:
                outcomes.append("conflict")

    threads = [threading.Thread(target=accept) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["accepted", "conflict"]
    with db.session() as session:
        assert len(session.exec(select(Friendship)).all()) == 1
    db.close()
