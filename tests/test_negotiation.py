import pytest

from rental.errors import InvalidTransitionError, ValidationError
from rental.negotiation import ADMIN, USER, Bargain
from rental.status import BargainStatus


def opened(price=500):
    return Bargain().create_offer(price)


def test_full_round_trip_locks_after_three_user_offers():
    bargain = opened(500)
    assert bargain.status == BargainStatus.USER_OFFERED
    assert bargain.user_attempts == 1

    bargain.counter(700)
    assert bargain.status == BargainStatus.ADMIN_COUNTERED

    bargain.counter_back(650)
    assert bargain.user_attempts == 2
    assert bargain.status == BargainStatus.USER_OFFERED

    bargain.counter(680)
    assert bargain.user_attempts == 2

    bargain.counter_back(660)
    assert bargain.user_attempts == 3
    assert bargain.status == BargainStatus.LOCKED
    assert bargain.history == [500, 650, 660]

    with pytest.raises(ValidationError):
        bargain.counter_back(655)
    with pytest.raises(InvalidTransitionError):
        bargain.counter(670)
    assert bargain.status == BargainStatus.LOCKED
    assert bargain.user_attempts == 3


def test_either_side_can_close_a_locked_round():
    by_admin = opened(500).counter(700).counter_back(650).counter(680).counter_back(660)
    assert by_admin.accept(ADMIN) == 660

    by_user = opened(500).counter(700).counter_back(650).counter(680).counter_back(660)
    assert by_user.accept(USER) == 680
    assert by_user.status == BargainStatus.ACCEPTED
    assert by_user.agreed_price == 680


def test_admin_counter_on_the_last_round_locks():
    bargain = Bargain(max_attempts=1).create_offer(500)
    bargain.counter(600)
    assert bargain.status == BargainStatus.LOCKED
    assert bargain.price_on_table == 600


def test_accept_uses_the_other_sides_price():
    assert opened(500).accept(ADMIN) == 500
    assert opened(500).counter(700).accept(USER) == 700


def test_cannot_accept_own_offer():
    with pytest.raises(InvalidTransitionError):
        opened(500).accept(USER)
    with pytest.raises(InvalidTransitionError):
        opened(500).counter(700).accept(ADMIN)


def test_second_accept_is_rejected_and_keeps_state():
    bargain = opened(500)
    bargain.accept(ADMIN)
    with pytest.raises(InvalidTransitionError):
        bargain.accept(ADMIN)
    assert bargain.status == BargainStatus.ACCEPTED
    assert bargain.agreed_price == 500


def test_invalid_price_leaves_record_untouched():
    bargain = opened(500).counter(700)
    before = bargain.to_dict()
    for bad in (None, 0, -5, "abc", float("nan"), float("inf"), True):
        with pytest.raises(ValidationError):
            bargain.counter_back(bad)
    assert bargain.to_dict() == before


def test_terminal_states_refuse_moves():
    rejected = opened(500).reject()
    with pytest.raises(InvalidTransitionError):
        rejected.reject()
    with pytest.raises(InvalidTransitionError):
        rejected.accept(ADMIN)

    expired = opened(500)
    assert expired.expire()
    assert not expired.expire()
    assert expired.status == BargainStatus.EXPIRED


def test_apply_routes_wire_actions():
    bargain = Bargain()
    bargain.apply("counter", USER, 500)
    assert bargain.status == BargainStatus.USER_OFFERED
    bargain.apply("COUNTER", ADMIN, 600)
    assert bargain.status == BargainStatus.ADMIN_COUNTERED
    bargain.apply("accept", USER)
    assert bargain.agreed_price == 600

    with pytest.raises(ValidationError):
        Bargain().apply("haggle", USER, 10)
    with pytest.raises(ValidationError):
        Bargain().apply("counter", "mechanic", 10)


def test_allowed_actions():
    assert Bargain().allowed_actions(USER) == {"counter", "reject"}
    assert opened().allowed_actions(ADMIN) == {"accept", "counter", "reject"}
    assert opened().allowed_actions(USER) == {"reject"}
    locked = opened(500).counter(700).counter_back(650).counter(680).counter_back(660)
    assert locked.allowed_actions(USER) == {"accept", "reject"}
    assert locked.allowed_actions(ADMIN) == {"accept", "reject"}
    assert opened().reject().allowed_actions(ADMIN) == set()


def test_apply_to_writes_agreed_price_once():
    class Row:
        final_amount = 1000

    row = Row()
    bargain = opened(800)
    assert not bargain.apply_to(row)
    bargain.accept(ADMIN)
    assert bargain.apply_to(row)
    assert row.final_amount == 800
    assert not bargain.apply_to(row)


def test_from_dict_accepts_both_key_styles():
    camel = Bargain.from_dict({
        "status": "admin countered",
        "userAttempts": 2,
        "offeredPrice": 650,
        "adminCounterPrice": "680",
        "history": [500, 650, "junk"],
    })
    assert camel.status == BargainStatus.ADMIN_COUNTERED
    assert camel.admin_counter_price == 680
    assert camel.history == [500, 650]
    assert camel.last_actor == ADMIN
    assert Bargain.from_dict(camel.to_dict()).to_dict() == camel.to_dict()
    assert Bargain.from_dict(None).status == BargainStatus.NONE


def test_copy_is_independent():
    bargain = opened(500)
    probe = bargain.copy()
    probe.accept(ADMIN)
    assert bargain.status == BargainStatus.USER_OFFERED
