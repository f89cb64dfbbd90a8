import logging
from flask import request, render_template, jsonify
from flask_login import current_user

from clubhub.utils import login_required
from clubhub.realtime import topics_for
from .service import MessageRejected, send_message, history, contacts_for
from . import messages_bp

logger = logging.getLogger(__name__)


@messages_bp.route('/messages')
@login_required
def chat():
    contacts = contacts_for(current_user)
    return render_template('messages.html',
                           user=current_user,
                           contacts=contacts,
                           rooms=[topic.room for topic in topics_for(current_user)])


@messages_bp.route('/messages/send', methods=['POST'])
@login_required
def send():
    data = request.get_json(silent=True) or request.form.to_dict()
    try:
        message = send_message(current_user, data)
    except MessageRejected as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception as e:
        logger.error(f"Failed to send message: {str(e)}")
        return jsonify({"error": "Something went wrong!"}), 500
    return jsonify({"message": message.to_dict()}), 201


@messages_bp.route('/messages/history')
@login_required
def message_history():
    try:
        messages = history(
            current_user,
            with_user=request.args.get('with'),
            club_id=request.args.get('club'),
            broadcast=request.args.get('broadcast'),
        )
    except MessageRejected as e:
        return jsonify({"error": str(e)}), e.status_code
    return jsonify({"messages": [m.to_dict() for m in messages]})


@messages_bp.route('/api/contacts')
@login_required
def contacts():
    return jsonify({"contacts": [
        {"id": u.id, "username": u.display_name, "role": u.role} for u in contacts_for(current_user)
    ]})


@messages_bp.route('/api/me')
@login_required
def me():
    return jsonify({"id": current_user.id, "username": current_user.display_name, "role": current_user.role})
