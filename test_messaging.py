#!/usr/bin/env python3
"""
Chat permissions over HTTP and room fan-out over Socket.IO.
"""

import re

import pytest

from conftest import make_student, make_club, subscribe, login, login_admin, STUDENT_PASSWORD, CLUB_PASSWORD
from clubhub.models import Message
from clubhub.realtime import socketio, UserRoom, ClubRoom, Broadcast


def login_student(client, email='201012345@psu.edu.sa'):
    return login(client, email, STUDENT_PASSWORD)


def login_club(client, email='robotics@psu.edu.sa'):
    return login(client, email, CLUB_PASSWORD)


def received(socket_client, name):
    return [packet['args'][0] for packet in socket_client.get_received() if packet['name'] == name]


def test_room_names():
    assert UserRoom(7).room == 'user_7'
    assert ClubRoom(3).room == 'club_3'
    assert Broadcast('students').room == 'student_broadcast'
    assert Broadcast('clubs').room == 'club_broadcast'


def test_invalid_topics_are_refused():
    with pytest.raises(ValueError):
        UserRoom(0)
    with pytest.raises(ValueError):
        ClubRoom(-1)
    with pytest.raises(ValueError):
        UserRoom('5')
    with pytest.raises(ValueError):
        Broadcast('deans')


def test_student_can_message_only_subscribed_clubs(app, client):
    club_id = make_club(app)
    other_club_id = make_club(app, name='Drama Club', email='drama@psu.edu.sa')
    student_id = make_student(app)
    subscribe(app, student_id, club_id)
    login_student(client)

    response = client.post('/messages/send', json={'receiverId': club_id, 'message': 'Hi there'})
    assert response.status_code == 201
    payload = response.get_json()['message']
    assert payload['senderId'] == student_id
    assert payload['receiverId'] == club_id
    assert payload['messageType'] == 'direct'
    assert payload['message'] == 'Hi there'

    response = client.post('/messages/send', json={'receiverId': other_club_id, 'message': 'Hi'})
    assert response.status_code == 403
    assert 'error' in response.get_json()


def test_students_cannot_message_each_other(app, client):
    make_student(app)
    other_id = make_student(app, email='201099999@psu.edu.sa', name='Other')
    login_student(client)
    response = client.post('/messages/send', json={'receiverId': other_id, 'message': 'psst'})
    assert response.status_code == 403


def test_message_validation(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    subscribe(app, student_id, club_id)
    login_student(client)

    assert client.post('/messages/send', json={'receiverId': club_id, 'message': '  '}).status_code == 400
    assert client.post('/messages/send', json={'receiverId': club_id, 'message': 'x' * 2001}).status_code == 400
    assert client.post('/messages/send', json={'message': 'nobody'}).status_code == 400
    assert client.post('/messages/send',
                       json={'receiverId': club_id, 'clubId': club_id, 'message': 'both'}).status_code == 400
    assert client.post('/messages/send', json={'receiverId': 9999, 'message': 'ghost'}).status_code == 404
    with app.app_context():
        assert Message.query.count() == 0


def test_only_staff_can_broadcast(app, client):
    make_student(app)
    login_student(client)
    response = client.post('/messages/send', json={'adminTarget': 'students', 'message': 'Hello all'})
    assert response.status_code == 403
    client.get('/logout')

    login_admin(client, app)
    response = client.post('/messages/send', json={'adminTarget': 'students', 'message': 'Campus closed Friday'})
    assert response.status_code == 201
    assert client.post('/messages/send', json={'adminTarget': 'everyone', 'message': 'x'}).status_code == 400


def test_group_chat_requires_subscription(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    login_student(client)

    assert client.post('/messages/send', json={'clubId': club_id, 'message': 'hello'}).status_code == 403
    assert client.get(f'/messages/history?club={club_id}').status_code == 403

    subscribe(app, student_id, club_id)
    assert client.post('/messages/send', json={'clubId': club_id, 'message': 'hello'}).status_code == 201
    history = client.get(f'/messages/history?club={club_id}').get_json()['messages']
    assert [m['message'] for m in history] == ['hello']


def test_direct_history_is_private_and_ordered(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    subscribe(app, student_id, club_id)

    login_student(client)
    client.post('/messages/send', json={'receiverId': club_id, 'message': 'first'})
    client.get('/logout')
    login_club(client)
    client.post('/messages/send', json={'receiverId': student_id, 'message': 'second'})

    history = client.get(f'/messages/history?with={student_id}').get_json()['messages']
    assert [m['message'] for m in history] == ['first', 'second']
    client.get('/logout')

    make_student(app, email='201099999@psu.edu.sa', name='Other')
    login_student(client, email='201099999@psu.edu.sa')
    assert client.get(f'/messages/history?with={club_id}').get_json()['messages'] == []


def test_contacts_follow_subscriptions(app, client):
    club_id = make_club(app)
    make_club(app, name='Drama Club', email='drama@psu.edu.sa')
    student_id = make_student(app)
    subscribe(app, student_id, club_id)
    login_student(client)

    contacts = client.get('/api/contacts').get_json()['contacts']
    assert [c['id'] for c in contacts] == [club_id]
    me = client.get('/api/me').get_json()
    assert me == {'id': student_id, 'username': 'Sara Ahmed', 'role': 'student'}
    assert client.get('/messages').status_code == 200


def test_anonymous_socket_is_rejected(app):
    socket_client = socketio.test_client(app)
    assert not socket_client.is_connected()


def test_socket_join_checks_the_claimed_identity(app, client):
    student_id = make_student(app)
    login_student(client)
    socket_client = socketio.test_client(app, flask_test_client=client)
    assert socket_client.is_connected()
    assert received(socket_client, 'connected') == [{'userId': student_id}]

    socket_client.emit('join', {'userId': student_id + 1, 'role': 'student'})
    assert received(socket_client, 'error')
    socket_client.emit('join', {'userId': student_id, 'role': 'admin'})
    assert received(socket_client, 'error')

    socket_client.emit('join', {'userId': student_id, 'role': 'student'})
    joined = received(socket_client, 'joined')
    assert joined == [{'rooms': [f'user_{student_id}', 'student_broadcast']}]
    socket_client.disconnect()


def test_direct_message_is_pushed_to_the_receiver(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    subscribe(app, student_id, club_id)

    login_student(client)
    student_socket = socketio.test_client(app, flask_test_client=client)
    student_socket.emit('join', {'userId': student_id, 'role': 'student'})
    student_socket.get_received()

    club_client = app.test_client()
    login_club(club_client)
    response = club_client.post('/messages/send', json={'receiverId': student_id, 'message': 'Welcome aboard'})
    assert response.status_code == 201

    messages = received(student_socket, 'new_message')
    assert len(messages) == 1
    assert messages[0]['message'] == 'Welcome aboard'
    assert messages[0]['senderId'] == club_id
    student_socket.disconnect()


def test_broadcast_reaches_students_only(app, client):
    student_id = make_student(app)
    club_id = make_club(app)

    login_student(client)
    student_socket = socketio.test_client(app, flask_test_client=client)
    student_socket.emit('join', {'userId': student_id, 'role': 'student'})
    student_socket.get_received()

    club_client = app.test_client()
    login_club(club_client)
    club_socket = socketio.test_client(app, flask_test_client=club_client)
    club_socket.emit('join', {'userId': club_id, 'role': 'club'})
    club_socket.get_received()

    admin_client = app.test_client()
    login_admin(admin_client, app)
    admin_client.post('/messages/send', json={'adminTarget': 'students', 'message': 'Exams next week'})

    assert [m['message'] for m in received(student_socket, 'new_message')] == ['Exams next week']
    assert received(club_socket, 'new_message') == []


def test_send_message_over_socket(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    subscribe(app, student_id, club_id)

    login_student(client)
    socket_client = socketio.test_client(app, flask_test_client=client)
    socket_client.emit('join', {'userId': student_id, 'role': 'student'})
    socket_client.get_received()

    socket_client.emit('send_message', {'clubId': club_id, 'message': 'Group hello'})
    names = [packet['name'] for packet in socket_client.get_received()]
    assert 'message_sent' in names
    assert 'new_message' in names

    socket_client.emit('send_message', {'receiverId': 9999, 'message': 'ghost'})
    assert received(socket_client, 'error')

    with app.app_context():
        assert Message.query.filter_by(message_type='group', club_id=club_id).count() == 1


def test_malformed_payloads_are_rejected(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    subscribe(app, student_id, club_id)
    login_student(client)

    response = client.post('/messages/send', json={'clubId': club_id, 'message': 123})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Message must be text'
    assert client.post('/messages/send', json=['x']).status_code == 400

    socket_client = socketio.test_client(app, flask_test_client=client)
    socket_client.get_received()
    socket_client.emit('send_message', ['x'])
    assert received(socket_client, 'error') == [{'message': 'Message payload must be an object'}]
    socket_client.emit('join', ['x'])
    assert received(socket_client, 'error')
    socket_client.disconnect()

    with app.app_context():
        assert Message.query.count() == 0


def test_chat_post_requires_csrf_token(app, client):
    club_id = make_club(app)
    student_id = make_student(app)
    subscribe(app, student_id, club_id)
    login_student(client)
    app.config['WTF_CSRF_ENABLED'] = True

    response = client.post('/messages/send', json={'clubId': club_id, 'message': 'hello'})
    assert response.status_code == 400

    page = client.get('/messages').get_data(as_text=True)
    token = re.search(r"'X-CSRFToken': '([^']+)'", page).group(1)
    response = client.post('/messages/send', json={'clubId': club_id, 'message': 'hello'},
                           headers={'X-CSRFToken': token})
    assert response.status_code == 201


def test_broadcast_history_follows_role(app, client):
    make_student(app)
    login_admin(client, app)
    client.post('/messages/send', json={'adminTarget': 'clubs', 'message': 'Club fair on Sunday'})
    assert [m['message'] for m in client.get('/messages/history?broadcast=clubs').get_json()['messages']] == [
        'Club fair on Sunday']
    client.get('/logout')

    login_student(client)
    assert client.get('/messages/history?broadcast=clubs').status_code == 403
    assert client.get('/messages/history?broadcast=students').get_json()['messages'] == []
