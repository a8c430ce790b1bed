import mimetypes
from flask import Blueprint, Response, jsonify, request, current_app, url_for
from werkzeug.utils import secure_filename

from app.exceptions import CatalogError, PermissionDenied, VideoNotFound

video_routes = Blueprint('video_routes', __name__)


@video_routes.errorhandler(VideoNotFound)
def handle_not_found(e):
    return jsonify({'message': str(e)}), 404


@video_routes.errorhandler(PermissionDenied)
def handle_permission_denied(e):
    return jsonify({'message': str(e)}), 403


@video_routes.errorhandler(CatalogError)
def handle_catalog_error(e):
    return jsonify({'message': str(e)}), 400


def _lookup_user(user_id):
    """Returns (user, None) or (None, error response)."""
    if not user_id:
        return None, (jsonify({'message': 'user ID is required'}), 400)
    user = current_app.extensions['users'].get(user_id)
    if user is None:
        return None, (jsonify({'message': 'user ID not found'}), 404)
    return user, None


def _is_video(filename: str, mimetype: str) -> bool:
    if mimetype and mimetype.startswith('video/'):
        return True
    return filename.lower().endswith(current_app.config['ALLOWED_EXTENSIONS'])


@video_routes.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    user = current_app.extensions['users'].login(data.get('email'))
    if user is None:
        return jsonify({'message': 'Unknown account'}), 401
    return jsonify({'user': user.to_dict()})


@video_routes.route('/upload', methods=['POST'])
def upload_video():
    user, error = _lookup_user(request.form.get('user_id'))
    if error:
        return error
    if not user.can_upload:
        return jsonify({'message': 'Only editors and admins can upload videos'}), 403

    file = request.files.get('video')
    if file is None or not file.filename:
        return jsonify({'message': 'A video file is required'}), 400
    filename = secure_filename(file.filename)
    mimetype = file.mimetype if file.mimetype and file.mimetype != 'application/octet-stream' else None
    mimetype = mimetype or mimetypes.guess_type(filename)[0] or 'application/octet-stream'
    if not _is_video(filename, mimetype):
        return jsonify({'message': 'Invalid file format. Must be a video file'}), 400

    title = (request.form.get('title') or '').strip()
    if not title:
        return jsonify({'message': 'A title is required'}), 400

    catalog = current_app.extensions['catalog']
    video_id = catalog.create(
        file.read(),
        filename,
        mimetype,
        title,
        request.form.get('description', ''),
        user,
    )
    return jsonify({
        'message': 'Video uploaded successfully',
        'id': video_id,
    }), 201


@video_routes.route('/videos', methods=['GET'])
def list_videos():
    user, error = _lookup_user(request.args.get('user_id'))
    if error:
        return error
    videos = current_app.extensions['catalog'].list(user, request.args.get('q'))
    return jsonify({'videos': [video.to_dict() for video in videos]})


@video_routes.route('/videos/<video_id>', methods=['GET'])
def get_video(video_id):
    user, error = _lookup_user(request.args.get('user_id'))
    if error:
        return error
    visible = {video.id: video for video in current_app.extensions['catalog'].list(user)}
    if video_id not in visible:
        raise VideoNotFound(video_id)
    return jsonify(visible[video_id].to_dict())


@video_routes.route('/videos/<video_id>', methods=['DELETE'])
def delete_video(video_id):
    user, error = _lookup_user(request.args.get('user_id'))
    if error:
        return error
    current_app.extensions['catalog'].delete(video_id, user)
    return jsonify({'message': 'Video deleted', 'id': video_id})


@video_routes.route('/videos/<video_id>/playback', methods=['GET'])
def get_playback(video_id):
    user, error = _lookup_user(request.args.get('user_id'))
    if error:
        return error
    catalog = current_app.extensions['catalog']
    if video_id not in {video.id for video in catalog.list(user)}:
        raise VideoNotFound(video_id)
    handle = catalog.get_playback_reference(video_id)
    if handle is None:
        return jsonify({'message': 'No stored file for this video'}), 404
    return jsonify({
        'token': handle.token,
        'url': url_for('video_routes.stream_playback', token=handle.token),
    })


@video_routes.route('/playback/<token>', methods=['GET'])
def stream_playback(token):
    playback = current_app.extensions['catalog'].read_playback(token)
    if playback is None:
        return jsonify({'message': 'Playback link expired'}), 404
    handle, data = playback
    return Response(data, mimetype=handle.mime_type)


@video_routes.route('/playback/<token>', methods=['DELETE'])
def revoke_playback(token):
    if not current_app.extensions['catalog'].revoke_playback(token):
        return jsonify({'message': 'Playback link expired'}), 404
    return jsonify({'message': 'Playback link revoked'})
