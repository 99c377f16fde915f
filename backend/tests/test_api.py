from decimal import Decimal


def test_index_and_health(client, engine):
    res = client.get('/')
    assert res.status_code == 200
    assert 'bingo' in res.get_json()['message']

    engine.start_round(10)
    res = client.get('/health')
    assert res.get_json() == {'status': 'ok', 'activeRounds': 1}


def test_login_rejects_bad_password(client, make_user):
    make_user(phone='0911111111')
    res = client.post('/login', json={'phone': '0911111111', 'password': 'nope'})
    assert res.status_code == 401
    assert res.get_json()['success'] is False


def test_me_requires_login(client):
    assert client.get('/me').status_code == 401


def test_me_shows_balance_and_wins(client, engine, scheduler, make_user):
    user = make_user(wallet='3', phone='0922222222')
    engine.start_round(10, prize_pool=Decimal('40'))
    engine.submit_win_claim(10, user.id, 9)
    scheduler.advance(3)

    res = client.post('/login', json={'phone': '0922222222', 'password': 'password'})
    assert res.get_json()['user']['wallet'] == 43.0
    me = client.get('/me').get_json()
    assert me['user']['total_earnings'] == 40.0
    assert me['user']['daily_earnings'] == 40.0
    assert [(w['winner_card'], w['prize']) for w in me['wins']] == [(9, 40.0)]

    assert client.post('/logout').get_json() == {'success': True}
    assert client.get('/me').status_code == 401


def test_earnings_roll_over_by_day_and_week(engine, make_user):
    from datetime import datetime

    user = make_user()
    accounts = engine.accounts
    accounts.record_earnings(user.id, Decimal('5'), now=datetime(2026, 10, 12, 10, 0))
    accounts.record_earnings(user.id, Decimal('7'), now=datetime(2026, 10, 12, 18, 0))
    assert (user.daily_earnings, user.weekly_earnings) == (Decimal('12'), Decimal('12'))

    accounts.record_earnings(user.id, Decimal('1'), now=datetime(2026, 10, 14, 9, 0))
    assert user.daily_earnings == Decimal('1')
    assert user.weekly_earnings == Decimal('13')

    accounts.record_earnings(user.id, Decimal('2'), now=datetime(2026, 10, 19, 9, 0))
    assert user.daily_earnings == Decimal('2')
    assert user.weekly_earnings == Decimal('2')
    assert user.total_earnings == Decimal('15')


def test_debit_refuses_overdraft(engine, make_user):
    import pytest
    from bingo.errors import InsufficientBalance

    user = make_user(wallet='4')
    with pytest.raises(InsufficientBalance):
        engine.accounts.debit(user.id, Decimal('10'))
    assert engine.accounts.debit(user.id, Decimal('4')).wallet == Decimal('0')


def test_history_by_bet_and_by_user(client, engine, scheduler, make_user):
    alice = make_user()
    bob = make_user()
    engine.start_round(10, prize_pool=Decimal('30'))
    engine.submit_win_claim(10, alice.id, 1)
    engine.submit_win_claim(10, bob.id, 2)
    scheduler.advance(3)
    engine.start_round(20, prize_pool=Decimal('16'))
    engine.submit_win_claim(20, alice.id, 5)
    scheduler.advance(3)

    tier_ten = client.get('/history/bet/10').get_json()
    assert sorted(h['winner_id'] for h in tier_ten) == sorted([alice.id, bob.id])
    assert {h['prize'] for h in tier_ten} == {15.0}

    mine = client.get(f'/history/user/{alice.id}').get_json()
    assert [h['bet_amount'] for h in mine] == [20.0, 10.0]
    assert len(client.get('/history?limit=2').get_json()) == 2
    assert client.get('/history/bet/50').get_json() == []

    res = client.get('/history/bet/abc')
    assert res.status_code == 400
    assert res.get_json()['code'] == 'validation_error'
