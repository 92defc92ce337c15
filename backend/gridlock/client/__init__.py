"""Participant-side code: talks to the match store and drives one seat.

Client processes never touch the Flask app or the database; everything goes
through the store's REST routes (``requests``) and its Socket.IO push channel
(the ``python-socketio`` client).
"""
