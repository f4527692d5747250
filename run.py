# Eventlet monkey patching MUST be first before any other imports
import eventlet
eventlet.monkey_patch()

from groupscore import create_app, db, socketio
from groupscore.models import Fixture, Group, GroupPrediction, GroupRules, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Group": Group,
        "GroupRules": GroupRules,
        "Fixture": Fixture,
        "GroupPrediction": GroupPrediction,
    }


if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=5000, debug=True)
