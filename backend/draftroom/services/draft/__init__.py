"""Draft room domain: snapshot model, turn scheduler, draft engine, ballot
tally and the room store.

Everything except ``store`` is plain Python over a ``RoomSnapshot`` and can
be used without an app context; HTTP routes stay thin and call in here.
"""
