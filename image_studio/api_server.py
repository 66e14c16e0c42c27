#!/usr/bin/env python3
"""
Image Studio API Server
Upload an image, preview filters, crop it interactively, remove the background
and download the result. Each user action is one endpoint; state lives in an
in-memory editing session.
"""

import os
import logging
import threading
from io import BytesIO
from typing import Optional

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from .models.errors import (
    ImageStudioError,
    InvalidImageError,
    DecodeError,
    EmptyCropError,
    UnknownFilterError,
    InvalidFilterValueError,
    NoImageLoadedError,
    SessionBusyError,
    CropNotOpenError,
    ProcessingError,
)
from .models.scene import Viewport
from .pipeline.editing_session import EditingSession
from .services.background_service import BackgroundService
from .services.image_service import ImageService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
ALLOWED_EXTENSIONS = set(os.getenv("ALLOWED_EXTENSIONS", "png,jpg,jpeg").split(","))
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "25")) * 1024 * 1024

app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services (the segmentation model itself loads on first use)
image_service = ImageService()
background_service = BackgroundService()

logger = logging.getLogger(__name__)

# Session storage for editing state
sessions = {}
_sessions_lock = threading.Lock()

# Core error → HTTP status
ERROR_STATUS = {
    InvalidImageError: 400,
    DecodeError: 400,
    EmptyCropError: 400,
    UnknownFilterError: 400,
    InvalidFilterValueError: 400,
    NoImageLoadedError: 409,
    SessionBusyError: 409,
    CropNotOpenError: 409,
    ProcessingError: 502,
}


def get_or_create_session(session_id: str = None) -> EditingSession:
    """Get existing session or create new one."""
    with _sessions_lock:
        if session_id and session_id in sessions:
            return sessions[session_id]
        session = EditingSession(session_id, image_service=image_service)
        sessions[session.session_id] = session
        return session


def find_session(session_id: Optional[str]) -> Optional[EditingSession]:
    with _sessions_lock:
        return sessions.get(session_id) if session_id else None


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def session_not_found():
    return jsonify({'success': False, 'message': 'Invalid session'}), 404


def image_response(session: EditingSession, message: str, **extra):
    """JSON body carrying the displayed image as a data URL plus the session state."""
    body = {
        'success': True,
        'session_id': session.session_id,
        'image': image_service.to_data_url(session.displayed),
        'state': session.summary(),
        'message': message,
    }
    body.update(extra)
    return jsonify(body)


def json_payload() -> dict:
    return request.get_json(silent=True) or {}


@app.route('/api/upload', methods=['POST'])
def upload_image():
    """Decode an uploaded JPEG/PNG and make it the session's source image."""
    if 'image' not in request.files:
        return jsonify({'success': False, 'message': 'No image provided'}), 400

    file = request.files['image']
    if file.filename == '':
        return jsonify({'success': False, 'message': 'No file selected'}), 400
    if not allowed_file(file.filename):
        return jsonify({'success': False, 'message': 'JPG, JPEG, PNG supported'}), 400

    session = get_or_create_session(request.form.get('session_id'))
    filename = secure_filename(file.filename)
    source = session.load_upload(file.read(), filename)
    if source is None:
        return jsonify({'success': False, 'message': 'Upload superseded by a newer one'}), 409

    logger.info(f"Upload {filename} loaded into session {session.session_id}: {source.width}x{source.height}")
    return image_response(session, 'Your image has been uploaded successfully.')


@app.route('/api/filters/point', methods=['POST'])
def apply_point_filter():
    """Grayscale / invert / none, always from the original."""
    payload = json_payload()
    session = find_session(payload.get('session_id'))
    if session is None:
        return session_not_found()

    operation = payload.get('operation', '')
    session.apply_point_operation(operation)
    return image_response(session, f"{session.filter_state.point_operation.value} filter has been applied.")


@app.route('/api/filters/update', methods=['POST'])
def update_filter():
    """Change one continuous filter; the preview is recomputed from the original."""
    payload = json_payload()
    session = find_session(payload.get('session_id'))
    if session is None:
        return session_not_found()

    try:
        name = payload['name']
        value = float(payload['value'])
    except (KeyError, TypeError, ValueError):
        return jsonify({'success': False, 'message': 'Expected numeric "value" and filter "name"'}), 400

    session.update_filter(name, value)
    return image_response(session, f"{name} set to {value}")


@app.route('/api/filters/reset', methods=['POST'])
def reset_filters():
    payload = json_payload()
    session = find_session(payload.get('session_id'))
    if session is None:
        return session_not_found()

    session.reset()
    return image_response(session, 'Image reset to original.')


@app.route('/api/crop/open', methods=['POST'])
def open_crop():
    """Fit the source into the crop viewport and place the default selection."""
    payload = json_payload()
    session = find_session(payload.get('session_id'))
    if session is None:
        return session_not_found()

    viewport = None
    if payload.get('viewport'):
        try:
            vp = payload['viewport']
            viewport = Viewport(float(vp['width']), float(vp['height']), float(vp.get('margin', 40)))
        except (KeyError, TypeError, ValueError):
            return jsonify({'success': False, 'message': 'Invalid viewport'}), 400

    session.open_crop(viewport)
    return jsonify({'success': True, 'session_id': session.session_id, 'state': session.summary()})


@app.route('/api/crop/selection', methods=['POST'])
def update_selection():
    payload = json_payload()
    session = find_session(payload.get('session_id'))
    if session is None:
        return session_not_found()

    try:
        session.update_selection(
            float(payload['left']),
            float(payload['top']),
            float(payload['width']),
            float(payload['height']),
            float(payload.get('scale_x', 1.0)),
            float(payload.get('scale_y', 1.0)),
        )
    except (KeyError, TypeError, ValueError):
        return jsonify({'success': False, 'message': 'Selection needs numeric left, top, width, height'}), 400

    return jsonify({'success': True, 'session_id': session.session_id, 'state': session.summary()})


@app.route('/api/crop/confirm', methods=['POST'])
def confirm_crop():
    """Commit the selection as the new original; filters reset."""
    payload = json_payload()
    session = find_session(payload.get('session_id'))
    if session is None:
        return session_not_found()

    cropped = session.confirm_crop()
    logger.info(f"Session {session.session_id} cropped to {cropped.width}x{cropped.height}")
    return image_response(session, 'Your image has been cropped successfully.')


@app.route('/api/crop/cancel', methods=['POST'])
def cancel_crop():
    payload = json_payload()
    session = find_session(payload.get('session_id'))
    if session is None:
        return session_not_found()

    session.cancel_crop()
    return jsonify({'success': True, 'session_id': session.session_id, 'state': session.summary()})


@app.route('/api/remove-background', methods=['POST'])
def remove_background():
    """Clear the background of the original image; shown as the displayed image."""
    payload = json_payload()
    session = find_session(payload.get('session_id'))
    if session is None:
        return session_not_found()

    logger.info(f"Removing background for session {session.session_id}")
    result = session.remove_background(background_service)
    if result is None:
        return jsonify({'success': False, 'message': 'Image changed while processing; result discarded'}), 409

    return image_response(session, 'Background has been removed successfully.')


@app.route('/api/export', methods=['GET'])
def export_image():
    """Download the displayed image as PNG."""
    session = find_session(request.args.get('session_id'))
    if session is None:
        return session_not_found()

    png = session.export_png()
    return send_file(
        BytesIO(png),
        mimetype='image/png',
        as_attachment=True,
        download_name=image_service.EXPORT_FILENAME,
    )


@app.route('/api/session/<session_id>', methods=['GET'])
def session_state(session_id):
    session = find_session(session_id)
    if session is None:
        return session_not_found()
    return jsonify({'success': True, 'state': session.summary()})


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Image Studio API is running',
        'active_sessions': len(sessions)
    })


@app.route('/api/clear-session', methods=['POST'])
def clear_session():
    """Clear a session and free memory."""
    session_id = json_payload().get('session_id')
    with _sessions_lock:
        session = sessions.pop(session_id, None) if session_id else None
    if session is None:
        return jsonify({'success': False, 'message': 'Session not found'}), 404
    session.clear()
    return jsonify({'success': True, 'message': 'Session cleared'})


@app.errorhandler(ImageStudioError)
def studio_error(e):
    """Core errors are terminal for the action only; state is unchanged."""
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(e, cls)), 500)
    logger.warning(f"{type(e).__name__}: {e}")
    return jsonify({'success': False, 'error': type(e).__name__, 'message': e.public_message}), status


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({'success': False, 'message': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'}), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'success': False, 'message': 'Internal server error'}), 500


def main():
    host = os.getenv("API_HOST", "127.0.0.1")
    port = int(os.getenv("API_PORT", "5000"))
    logger.info(f"Starting Image Studio API on {host}:{port} (max upload {MAX_CONTENT_LENGTH // (1024 * 1024)}MB)")
    app.run(host=host, port=port, threaded=True)


if __name__ == '__main__':
    main()
