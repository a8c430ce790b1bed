import logging
import threading
from flask_socketio import emit, join_room, SocketIO

from app.schemas.video_record import ProcessingUpdate, User, UserRole
from app.services.users import UserDirectory
from app.services.video_catalog import VideoCatalog

logger = logging.getLogger(__name__)

socketio = None


def room_for(org_id: str, role: UserRole) -> str:
    # viewers get their own room so they never hear about unscreened videos
    audience = 'viewer' if role == UserRole.VIEWER else 'staff'
    return f'{org_id}/{audience}'


def init_socketio(socketio_instance: SocketIO, catalog: VideoCatalog, users: UserDirectory) -> None:
    global socketio
    socketio = socketio_instance
    snapshots = {}
    snapshots_lock = threading.Lock()

    def org_listing(org_id: str, role: UserRole) -> list[dict]:
        reader = User(id='', name='', email='', org_id=org_id, role=role)
        return [video.to_dict() for video in catalog.list(reader)]

    @socketio.on('connect')
    def handle_connect():
        emit('message', {'message': 'Connected to server!'})

    @socketio.on('disconnect')
    def handle_disconnect():
        pass

    @socketio.on('authenticate')
    def handle_authenticate(data):
        user = users.get((data or {}).get('user_id'))
        if user is None:
            return "ERROR", {'message': 'User ID not provided or unknown', 'videos': []}
        room = room_for(user.org_id, user.role)
        join_room(room)
        with snapshots_lock:
            snapshots.setdefault(room, org_listing(user.org_id, user.role))
        return "OK", {'message': 'Authenticated!', 'user': user.to_dict(),
                      'videos': [video.to_dict() for video in catalog.list(user)]}

    def patch_room(org_id: str, role: UserRole) -> None:
        room = room_for(org_id, role)
        new_listing = org_listing(org_id, role)
        with snapshots_lock:
            if room not in snapshots:
                return
            old_listing = snapshots[room]
            snapshots[room] = new_listing
        patch = catalog.metadata_store.create_patch(old_listing, new_listing)
        if patch.patch:
            logger.debug("Patching frontend %s: %s", room, patch)
            socketio.emit('patch_frontend', patch.to_string(), room=room)

    def forward_update(update: ProcessingUpdate) -> None:
        if update.org_id is None:
            return
        socketio.emit('processing_update', update.to_dict(), room=room_for(update.org_id, UserRole.ADMIN))
        patch_room(update.org_id, UserRole.ADMIN)
        patch_room(update.org_id, UserRole.VIEWER)

    catalog.subscribe(forward_update)
