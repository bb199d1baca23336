# run.py
import eventlet
eventlet.monkey_patch()
import logging
import os
from planning_roulette import create_app, socketio

app = create_app()

# Configure logging to include line number
logging.basicConfig(
    format='%(asctime)s [%(levelname)s] %(filename)s:%(lineno)d - %(message)s',
    level=logging.INFO
)


if __name__ == "__main__":
    port = int(os.environ.get('PORT', 5001))
    socketio.run(app, host="0.0.0.0", port=port, debug=os.environ.get('FLASK_DEBUG') in ('1', 'true', 'True'))
