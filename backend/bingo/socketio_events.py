from functools import wraps
from typing import Dict, Optional

from flask import current_app, request
from flask_login import current_user
from flask_socketio import emit
from sqlalchemy.exc import SQLAlchemyError

from bingo import db
from bingo.errors import BingoError, NotFound, RoundInProgress, Unauthorized, ValidationError
from bingo.services.rounds.state import normalize_tier, wire_tier
from bingo.services.rounds.stores import ACTIVE, LISTED_STATUSES, PAID_STATUSES, SESSION_STATUSES


# sid -> verified user id handed over at connect time
_sid_to_user: Dict[str, Optional[str]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _engine():
    return current_app.extensions['bingo']


def _identity() -> Optional[str]:
    if current_user and current_user.is_authenticated:
        return str(current_user.id)
    return _sid_to_user.get(_get_sid())


def _require_identity() -> str:
    user_id = _identity()
    if not user_id:
        raise Unauthorized()
    return user_id


def _is_admin() -> bool:
    # Only a logged-in session counts; a handshake userId is not verified
    return bool(current_user and current_user.is_authenticated and current_user.role == 'admin')


def _acting_user(data, *fields) -> str:
    """User a command acts for: the caller, or any named user for admins."""
    requested = next((data.get(f) for f in fields if data.get(f)), None)
    if requested is not None and _is_admin():
        return str(requested)
    user_id = _require_identity()
    if requested is not None and str(requested) != user_id:
        raise Unauthorized('Cannot act for another player')
    return user_id


def _ensure_no_live_round(tier) -> None:
    if _engine().registry.live(tier) is not None:
        raise RoundInProgress(wire_tier(tier))


def _int_field(data, name, required=True) -> Optional[int]:
    value = (data or {}).get(name)
    if value is None:
        if required:
            raise ValidationError(f'{name} is required')
        return None
    try:
        if isinstance(value, bool):
            raise ValueError(value)
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be an integer', details={name: value})


def _tier(data):
    data = data or {}
    return normalize_tier(data.get('tier', data.get('betAmount')))


def _sessions_payload(tiers=None, statuses=PAID_STATUSES):
    return [s.to_dict() for s in _engine().sessions.find(tiers=tiers, statuses=statuses)]


def command(handler):
    """Report failures to the sender only; nothing error-related is broadcast."""
    @wraps(handler)
    def wrapper(data=None):
        try:
            return handler(data or {})
        except BingoError as exc:
            db.session.rollback()
            emit('error', exc.to_dict())
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception(f"[command-failed] {handler.__name__}")
            emit('error', {'code': 'persistence_failure', 'message': 'Storage error'})
        except Exception:
            current_app.logger.exception(f"[command-failed] {handler.__name__}")
            emit('error', {'code': 'internal_error', 'message': 'Internal server error'})
    return wrapper


def handle_connect(auth=None):
    user_id = None
    if current_user and current_user.is_authenticated:
        user_id = str(current_user.id)
    else:
        user_id = (auth or {}).get('userId') or request.args.get('userId')
    _sid_to_user[_get_sid()] = str(user_id) if user_id else None
    current_app.logger.info(f"[connect] sid={_get_sid()} user={user_id}")
    emit('connected', {'message': 'Connected to /ws', 'userId': user_id})


def handle_disconnect(*args):
    user_id = _sid_to_user.pop(_get_sid(), None)
    current_app.logger.info(f"[disconnect] sid={_get_sid()} user={user_id}")


# ---- Round commands ----

@command
def handle_start_round(data):
    prize_pool = data.get('prizePool')
    if prize_pool is not None:
        # Pools come from collected stakes; only an admin may override one
        if not _is_admin():
            raise Unauthorized('Only an admin may set prizePool')
        try:
            prize_pool = normalize_tier(prize_pool)
        except ValidationError:
            raise ValidationError('prizePool must be a positive number', details={'prizePool': prize_pool})
    state = _engine().start_round(_tier(data), prize_pool=prize_pool)
    emit('round-state', state.to_dict())


@command
def handle_stop_round(data):
    _engine().stop_round(_tier(data))


@command
def handle_submit_claim(data):
    participant = _acting_user(data, 'participant', 'winnerId')
    card_ref = _int_field(data, 'cardRef' if 'cardRef' in data else 'winnerCard')
    _engine().submit_win_claim(_tier(data), participant, card_ref)


@command
def handle_get_round_state(data):
    emit('round-state', _engine().round_snapshot(_tier(data)))


@command
def handle_reset_round(data):
    _engine().reset_round(_tier(data))


@command
def handle_get_timer_states(data):
    emit('timer-states', _engine().supervisor.snapshot())


# ---- Card sessions ----

@command
def handle_get_sessions(data):
    tiers = data.get('tiers') or data.get('betOptions')
    if tiers:
        tiers = [normalize_tier(t) for t in tiers]
    elif data.get('tier') is not None or data.get('betAmount') is not None:
        tiers = [_tier(data)]
    else:
        tiers = None
    emit('sessions-updated', _sessions_payload(tiers, LISTED_STATUSES))


@command
def handle_create_session(data):
    user_id = _require_identity()
    tier = _tier(data)
    card_number = _int_field(data, 'cardNumber')
    if card_number <= 0:
        raise ValidationError('cardNumber must be positive')
    # The running round's pool is already frozen; a stake taken now would be lost
    _ensure_no_live_round(tier)
    engine = _engine()
    if engine.sessions.find_one(tier, card_number=card_number, statuses=PAID_STATUSES):
        raise ValidationError('Card already taken', details={'cardNumber': card_number})
    user = engine.accounts.debit(user_id, tier)
    created = engine.sessions.create(user.id, card_number, tier)
    db.session.commit()
    current_app.logger.info(f"[session-create] tier={tier} user={user_id} card={card_number}")
    emit('wallet-updated', float(user.wallet))
    engine.broadcast('session-created', created.to_dict())
    engine.broadcast('sessions-updated', _sessions_payload())


@command
def handle_delete_session(data):
    user_id = _require_identity()
    tier = _tier(data)
    card_number = _int_field(data, 'cardNumber')
    _ensure_no_live_round(tier)
    engine = _engine()
    user = engine.accounts.get(user_id)
    session = engine.sessions.find_one(tier, card_number=card_number, user_id=user.id, statuses=[ACTIVE])
    if session is None:
        raise NotFound('Session not found')
    engine.accounts.credit(user.id, tier)
    engine.sessions.delete(session)
    db.session.commit()
    current_app.logger.info(f"[session-delete] tier={tier} user={user_id} card={card_number} refunded")
    emit('wallet-updated', float(user.wallet))
    engine.broadcast('sessions-updated', _sessions_payload())


@command
def handle_refund_cards(data):
    """Cancel every active card the player holds on a tier and refund the stakes."""
    tier = _tier(data)
    user_id = _acting_user(data, 'userId')
    _ensure_no_live_round(tier)
    engine = _engine()
    user = engine.accounts.get(user_id)
    cards = engine.sessions.find_for_user(tier, user.id, statuses=[ACTIVE])
    if not cards:
        raise NotFound('No sessions found', details={'tier': wire_tier(tier)})
    engine.accounts.credit(user.id, tier * len(cards))
    for card in cards:
        engine.sessions.delete(card)
    db.session.commit()
    current_app.logger.info(f"[session-refund] tier={tier} user={user_id} cards={len(cards)}")
    emit('wallet-updated', float(user.wallet))
    engine.broadcast('sessions-updated', _sessions_payload())


def _status(data) -> str:
    status = data.get('status')
    if status not in SESSION_STATUSES:
        raise ValidationError('Unknown session status', details={'status': status})
    return status


@command
def handle_update_session_status(data):
    tier = _tier(data)
    card_number = _int_field(data, 'cardNumber')
    status = _status(data)
    engine = _engine()
    if not engine.sessions.update_status_for_card(tier, card_number, status):
        raise NotFound('Session not found', details={'cardNumber': card_number})
    db.session.commit()
    current_app.logger.info(f"[session-status] tier={tier} card={card_number} ->{status}")
    engine.broadcast('sessions-updated', _sessions_payload([tier], LISTED_STATUSES))


@command
def handle_update_session_status_by_user_bet(data):
    tier = _tier(data)
    user_id = _acting_user(data, 'userId')
    status = _status(data)
    engine = _engine()
    user = engine.accounts.get(user_id)
    moved = engine.sessions.update_status_for_user(tier, user.id, status)
    db.session.commit()
    current_app.logger.info(f"[session-status] tier={tier} user={user_id} ->{status} count={moved}")
    engine.broadcast('sessions-updated', _sessions_payload([tier], LISTED_STATUSES))


@command
def handle_update_session_status_by_bet(data):
    tier = _tier(data)
    status = _status(data)
    engine = _engine()
    moved = engine.sessions.update_status_for_tier(tier, ACTIVE, status)
    db.session.commit()
    current_app.logger.info(f"[session-status] tier={tier} {ACTIVE}->{status} count={moved}")
    engine.broadcast('sessions-updated', _sessions_payload([tier]))


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'start-round': handle_start_round,
    'stop-round': handle_stop_round,
    'submit-claim': handle_submit_claim,
    'get-round-state': handle_get_round_state,
    'reset-round': handle_reset_round,
    'get-timer-states': handle_get_timer_states,
    'get-sessions': handle_get_sessions,
    'create-session': handle_create_session,
    'delete-session': handle_delete_session,
    'refund-wallet': handle_refund_cards,
    'clear-selected': handle_refund_cards,
    'update-session-status': handle_update_session_status,
    'update-session-status-by-user-bet': handle_update_session_status_by_user_bet,
    'update-session-status-by-bet': handle_update_session_status_by_bet,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from bingo import socketio

    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        # Test-only mirror on default namespace
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
