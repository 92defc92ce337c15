from flask import Blueprint, jsonify
from flask_login import login_user, logout_user, current_user
from gridlock import db
from gridlock.models import Participant

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Grid Lock match store'})

@main.route('/session', methods=['POST'])
def sign_in():
    """
    Anonymous sign-in. Returns the current participant id, creating one if
    this session has none. Sign out and sign in again to rotate it.
    """
    if current_user.is_authenticated:
        return jsonify({'participant': current_user.to_dict()})
    participant = Participant()
    db.session.add(participant)
    db.session.commit()
    login_user(participant, remember=True)
    return jsonify({'participant': participant.to_dict()}), 201

@main.route('/session', methods=['GET'])
def get_session():
    if not current_user.is_authenticated:
        return jsonify({'error': 'Not signed in'}), 401
    return jsonify({'participant': current_user.to_dict()})

@main.route('/session', methods=['DELETE'])
def sign_out():
    logout_user()
    return jsonify({'success': True})
