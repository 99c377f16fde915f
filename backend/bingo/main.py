from flask import Blueprint, current_app, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from bingo.errors import BingoError
from bingo.models import User
from bingo.services.rounds.state import normalize_tier

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the bingo game server!'})

@main.route('/health')
def health():
    engine = current_app.extensions['bingo']
    return jsonify({'status': 'ok', 'activeRounds': len(engine.registry)})

@main.route('/login', methods=['POST', 'OPTIONS'])
def login():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    data = request.get_json(silent=True) or {}
    user = User.query.filter_by(phone=data.get('phone')).first()
    if user and user.is_active and user.check_password(data.get('password') or ''):
        login_user(user, remember=True)
        return jsonify({"success": True, "user": user.to_dict()})
    return jsonify({"success": False, "message": "Invalid credentials"}), 401

@main.route('/logout', methods=['POST', 'OPTIONS'])
@login_required
def logout():
    logout_user()
    return jsonify({"success": True})

@main.route('/me')
@login_required
def me():
    # Balance, earnings and recent wins of the logged-in player
    wins = current_app.extensions["bingo"].history.for_user(current_user.id, limit=20)
    return jsonify({"user": current_user.to_dict(), "wins": [w.to_dict() for w in wins]})

def _history_response(entries):
    return jsonify([entry.to_dict() for entry in entries])

@main.route('/history')
def history():
    limit = request.args.get('limit', type=int)
    return _history_response(current_app.extensions['bingo'].history.recent(limit))

@main.route('/history/user/<int:user_id>')
def history_for_user(user_id):
    limit = request.args.get('limit', type=int)
    return _history_response(current_app.extensions['bingo'].history.for_user(user_id, limit))

@main.route('/history/bet/<amount>')
def history_for_bet(amount):
    try:
        tier = normalize_tier(amount)
    except BingoError as exc:
        return jsonify(exc.to_dict()), 400
    limit = request.args.get('limit', type=int)
    return _history_response(current_app.extensions['bingo'].history.for_tier(tier, limit))
