from flask_cors import CORS
from flask_mail import Mail
from flask_migrate import Migrate
from flask_socketio import SocketIO

cors = CORS()
mail = Mail()
migrate = Migrate()
socketio = SocketIO()
