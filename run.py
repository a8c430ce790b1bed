from app.config import Config

if Config.SOCKETIO_ASYNC_MODE == 'gevent':
    # classifier calls must yield to the other pipeline jobs
    from gevent import monkey
    monkey.patch_all()

import logging

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

from app import create_app

socketio, app = create_app()

if __name__ == '__main__':
    socketio.run(app, host='0.0.0.0', port=5000)
